"""
Wallet Service
==============

Owns every write to a wallet's balance, spending counters and PIN.

RULE 1: balance >= 0 at all times.
RULE 2: todaySpent resets once per calendar day (WALLET_TIMEZONE), before
        any limit check.
RULE 3: a debit passes only if the wallet is active, not frozen,
        amount <= perTransactionLimit, todaySpent + amount <= dailyLimit
        and amount <= balance. Checked in that order.
RULE 4: every balance change is written together with its ledger entry in
        one database transaction.

Balance mutations are single conditional UPDATE statements, so two
concurrent debits can never both pass the checks against a stale snapshot.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import auth_utils
from config import settings
from ledger_service import LedgerService
from models import CONNECTED_ACCOUNT_TYPES, ConnectedAccount, User, Wallet, utcnow
from service_result import ErrorKind, ServiceResult

log = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Numeric(14, 2) ceiling
MAX_AMOUNT = Decimal("1000000000000")


def current_day() -> date:
    """Today's calendar date in the configured wallet timezone."""
    return datetime.now(ZoneInfo(settings.WALLET_TIMEZONE)).date()


def parse_amount(value) -> Optional[Decimal]:
    """Return a positive two-decimal Decimal, or None if the value is unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount <= 0 or amount >= MAX_AMOUNT:
        return None
    if amount != amount.quantize(CENT):
        return None
    return amount.quantize(CENT)


def _invalid_amount() -> ServiceResult:
    return ServiceResult.fail(ErrorKind.INVALID_AMOUNT, "Amount must be a positive value with at most two decimals")


def _money(wallet: Wallet, value) -> str:
    return f"{wallet.currency} {Decimal(value):,.2f}"


async def _load_wallet(db: AsyncSession, *conditions) -> Optional[Wallet]:
    result = await db.execute(
        select(Wallet)
        .options(selectinload(Wallet.connected_accounts))
        .where(*conditions)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


class WalletService:
    """Service for wallet balances, limits, PINs and transfers"""

    # ------------------------------------------------------------------
    # Lookup / lifecycle
    # ------------------------------------------------------------------
    @staticmethod
    async def get_wallet(db: AsyncSession, user_id: int) -> Optional[Wallet]:
        return await _load_wallet(db, Wallet.user_id == user_id)

    @staticmethod
    async def get_or_create_wallet(db: AsyncSession, user_id: int) -> Wallet:
        """
        Return the user's wallet, creating a default one on first access.

        The currency comes from the user's profile. The daily reset check
        always runs before the wallet is returned.
        """
        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            user = await db.get(User, user_id)
            currency = (user.currency if user and user.currency else settings.WALLET_DEFAULT_CURRENCY).upper()
            if currency not in settings.WALLET_SUPPORTED_CURRENCIES:
                currency = settings.WALLET_DEFAULT_CURRENCY
            db.add(Wallet(
                user_id=user_id,
                balance=Decimal("0"),
                currency=currency,
                daily_limit=Decimal(settings.WALLET_DEFAULT_DAILY_LIMIT),
                per_transaction_limit=Decimal(settings.WALLET_DEFAULT_PER_TRANSACTION_LIMIT),
                today_spent=Decimal("0"),
                last_reset_date=current_day(),
                total_deposits=Decimal("0"),
                total_withdrawals=Decimal("0"),
                total_transactions=0,
            ))
            try:
                await db.commit()
                log.info(f"Wallet created for user {user_id} ({currency})")
            except IntegrityError:
                # Another request created it first
                await db.rollback()
            wallet = await WalletService.get_wallet(db, user_id)

        await WalletService.reset_daily_limit_if_needed(db, wallet)
        return wallet

    @staticmethod
    async def reset_daily_limit_if_needed(db: AsyncSession, wallet: Wallet) -> bool:
        """
        Zero todaySpent if the calendar day rolled over since lastResetDate.

        Returns True only for the call that performed the reset.
        """
        today = current_day()
        if wallet.last_reset_date is not None and wallet.last_reset_date >= today:
            return False

        result = await db.execute(
            update(Wallet)
            .where(
                Wallet.id == wallet.id,
                or_(Wallet.last_reset_date.is_(None), Wallet.last_reset_date < today),
            )
            .values(today_spent=Decimal("0"), last_reset_date=today)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await _load_wallet(db, Wallet.id == wallet.id)
        reset = result.rowcount == 1
        if reset:
            log.info(f"Daily spend reset for wallet {wallet.id} ({today.isoformat()})")
        return reset

    # ------------------------------------------------------------------
    # Credit / debit primitives
    # ------------------------------------------------------------------
    @staticmethod
    def check_debit(wallet: Wallet, amount: Decimal) -> Optional[ServiceResult]:
        """Return the first failing debit rule, or None if the debit may proceed."""
        if wallet.is_frozen:
            return ServiceResult.fail(ErrorKind.WALLET_FROZEN, "Wallet is frozen")
        if not wallet.is_active:
            return ServiceResult.fail(ErrorKind.WALLET_INACTIVE, "Wallet is not active")
        if amount > wallet.per_transaction_limit:
            return ServiceResult.fail(
                ErrorKind.EXCEEDS_PER_TRANSACTION_LIMIT,
                f"Transaction exceeds per-transaction limit of {_money(wallet, wallet.per_transaction_limit)}",
            )
        if wallet.today_spent + amount > wallet.daily_limit:
            return ServiceResult.fail(
                ErrorKind.EXCEEDS_DAILY_LIMIT,
                f"Transaction exceeds daily limit of {_money(wallet, wallet.daily_limit)}",
            )
        if amount > wallet.balance:
            return ServiceResult.fail(ErrorKind.INSUFFICIENT_BALANCE, "Insufficient balance")
        return None

    @staticmethod
    async def _apply_credit(db: AsyncSession, wallet: Wallet, amount: Decimal) -> ServiceResult:
        now = utcnow()
        result = await db.execute(
            update(Wallet)
            .where(
                Wallet.id == wallet.id,
                # Stored totals must stay inside Numeric(14, 2)
                Wallet.balance + amount < MAX_AMOUNT,
                Wallet.total_deposits + amount < MAX_AMOUNT,
            )
            .values(
                balance=Wallet.balance + amount,
                total_deposits=Wallet.total_deposits + amount,
                total_transactions=Wallet.total_transactions + 1,
                last_transaction_date=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return ServiceResult.fail(ErrorKind.INVALID_AMOUNT, "Amount would exceed the maximum wallet balance")
        return ServiceResult.success(await _load_wallet(db, Wallet.id == wallet.id))

    @staticmethod
    async def _apply_debit(db: AsyncSession, wallet: Wallet, amount: Decimal) -> ServiceResult:
        fresh = await _load_wallet(db, Wallet.id == wallet.id)
        failure = WalletService.check_debit(fresh, amount)
        if failure:
            return failure

        now = utcnow()
        result = await db.execute(
            update(Wallet)
            .where(
                Wallet.id == wallet.id,
                Wallet.is_frozen.is_(False),
                Wallet.is_active.is_(True),
                Wallet.per_transaction_limit >= amount,
                Wallet.today_spent + amount <= Wallet.daily_limit,
                Wallet.balance >= amount,
            )
            .values(
                balance=Wallet.balance - amount,
                today_spent=Wallet.today_spent + amount,
                total_withdrawals=Wallet.total_withdrawals + amount,
                total_transactions=Wallet.total_transactions + 1,
                last_transaction_date=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        fresh = await _load_wallet(db, Wallet.id == wallet.id)
        if result.rowcount != 1:
            # Lost a race: report whatever rule the new state violates
            return WalletService.check_debit(fresh, amount) or ServiceResult.fail(
                ErrorKind.INSUFFICIENT_BALANCE, "Insufficient balance"
            )
        return ServiceResult.success(fresh)

    @staticmethod
    async def credit(db: AsyncSession, wallet: Wallet, amount, source: str = "deposit") -> ServiceResult:
        """Add funds. Succeeds for any positive amount the balance column can hold."""
        amount = parse_amount(amount)
        if amount is None:
            return _invalid_amount()
        outcome = await WalletService._apply_credit(db, wallet, amount)
        if not outcome.ok:
            await db.rollback()
            return outcome
        wallet = outcome.value
        await db.commit()
        log.info(f"Wallet {wallet.id} credited {amount} ({source}); balance {wallet.balance}")
        return ServiceResult.success(wallet)

    @staticmethod
    async def debit(db: AsyncSession, wallet: Wallet, amount, purpose: str = "withdrawal") -> ServiceResult:
        """Remove funds subject to status, limit and balance rules."""
        amount = parse_amount(amount)
        if amount is None:
            return _invalid_amount()
        await WalletService.reset_daily_limit_if_needed(db, wallet)
        outcome = await WalletService._apply_debit(db, wallet, amount)
        if not outcome.ok:
            await db.rollback()
            log.info(f"Debit of {amount} on wallet {wallet.id} rejected: {outcome.reason}")
            return outcome
        await db.commit()
        log.info(f"Wallet {wallet.id} debited {amount} ({purpose}); balance {outcome.value.balance}")
        return outcome

    # ------------------------------------------------------------------
    # PIN
    # ------------------------------------------------------------------
    @staticmethod
    def _check_pin(wallet: Wallet, pin: Optional[str]) -> Optional[ServiceResult]:
        if not wallet.hashed_pin:
            return None
        if not pin:
            return ServiceResult.fail(ErrorKind.PIN_REQUIRED, "PIN required")
        if not auth_utils.verify_pin(pin, wallet.hashed_pin):
            return ServiceResult.fail(ErrorKind.INVALID_PIN, "Invalid PIN")
        return None

    @staticmethod
    async def set_pin(db: AsyncSession, user_id: int, pin: str, current_pin: Optional[str] = None) -> ServiceResult:
        """Set or change the wallet PIN. Changing requires the current PIN."""
        if not pin or len(pin) < settings.PIN_MIN_LENGTH:
            return ServiceResult.fail(
                ErrorKind.INVALID_PIN_FORMAT,
                f"PIN must be at least {settings.PIN_MIN_LENGTH} characters",
            )

        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        if wallet.hashed_pin:
            if not current_pin:
                return ServiceResult.fail(ErrorKind.PIN_REQUIRED, "Current PIN required")
            if not auth_utils.verify_pin(current_pin, wallet.hashed_pin):
                return ServiceResult.fail(ErrorKind.INVALID_PIN, "Invalid current PIN")

        wallet.hashed_pin = auth_utils.hash_pin(pin)
        await db.commit()
        log.info(f"PIN updated for wallet {wallet.id}")
        return ServiceResult.success(True)

    @staticmethod
    async def verify_pin(db: AsyncSession, user_id: int, pin: Optional[str]) -> ServiceResult:
        if not pin:
            return ServiceResult.fail(ErrorKind.PIN_REQUIRED, "PIN required")
        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None or not wallet.hashed_pin:
            return ServiceResult.fail(ErrorKind.PIN_NOT_SET, "PIN not set")
        return ServiceResult.success(auth_utils.verify_pin(pin, wallet.hashed_pin))

    # ------------------------------------------------------------------
    # Operations that write ledger entries
    # ------------------------------------------------------------------
    @staticmethod
    async def deposit(
        db: AsyncSession,
        user_id: int,
        amount,
        source: Optional[str] = None,
        reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ServiceResult:
        """Credit the wallet and record an income entry. Returns {wallet, transaction}."""
        amount = parse_amount(amount)
        if amount is None:
            return _invalid_amount()

        wallet = await WalletService.get_or_create_wallet(db, user_id)
        try:
            outcome = await WalletService._apply_credit(db, wallet, amount)
            if not outcome.ok:
                await db.rollback()
                return outcome
            wallet = outcome.value
            entry = await LedgerService.record_entry(
                db,
                user_id=user_id,
                amount=amount,
                entry_type="income",
                category="wallet_deposit",
                description=description or f"Wallet deposit from {source or 'unknown'}",
                reference=reference,
                notes=f"Deposited to wallet. New balance: {_money(wallet, wallet.balance)}",
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            log.exception(f"Deposit failed for user {user_id}")
            raise

        log.info(f"Deposit of {amount} for user {user_id}; balance {wallet.balance}")
        return ServiceResult.success({"wallet": wallet, "transaction": entry})

    @staticmethod
    async def withdraw(
        db: AsyncSession,
        user_id: int,
        amount,
        destination: Optional[str] = None,
        pin: Optional[str] = None,
        description: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> ServiceResult:
        """PIN-gated debit plus an expense entry. Returns {wallet, transaction}."""
        amount = parse_amount(amount)
        if amount is None:
            return _invalid_amount()

        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        pin_failure = WalletService._check_pin(wallet, pin)
        if pin_failure:
            return pin_failure

        await WalletService.reset_daily_limit_if_needed(db, wallet)
        try:
            outcome = await WalletService._apply_debit(db, wallet, amount)
            if not outcome.ok:
                await db.rollback()
                log.info(f"Withdrawal of {amount} for user {user_id} rejected: {outcome.reason}")
                return outcome
            wallet = outcome.value
            entry = await LedgerService.record_entry(
                db,
                user_id=user_id,
                amount=amount,
                entry_type="expense",
                category="wallet_withdrawal",
                description=description or f"Withdrawal to {destination or 'external account'}",
                reference=account_number,
                notes=f"Withdrawn from wallet. New balance: {_money(wallet, wallet.balance)}",
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            log.exception(f"Withdrawal failed for user {user_id}")
            raise

        log.info(f"Withdrawal of {amount} for user {user_id}; balance {wallet.balance}")
        return ServiceResult.success({"wallet": wallet, "transaction": entry})

    @staticmethod
    async def transfer(
        db: AsyncSession,
        sender_id: int,
        recipient_id: Optional[int],
        amount,
        pin: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ServiceResult:
        """
        Move funds between two wallets.

        Sender debit, recipient credit and both ledger entries are committed
        together. Any storage failure rolls all four back and yields
        TRANSFER_FAILED, so one side is never left mutated alone.

        Returns {sender_wallet, recipient_wallet, sender_transaction,
        recipient_transaction}.
        """
        amount = parse_amount(amount)
        if amount is None:
            return _invalid_amount()
        if recipient_id is None:
            return ServiceResult.fail(ErrorKind.MISSING_RECIPIENT, "Recipient required")
        if recipient_id == sender_id:
            return ServiceResult.fail(ErrorKind.INVALID_RECIPIENT, "Cannot transfer to your own wallet")

        recipient = await db.get(User, recipient_id)
        if recipient is None or not recipient.is_active:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Recipient not found")

        sender_wallet = await WalletService.get_wallet(db, sender_id)
        if sender_wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        pin_failure = WalletService._check_pin(sender_wallet, pin)
        if pin_failure:
            return pin_failure

        await WalletService.reset_daily_limit_if_needed(db, sender_wallet)
        recipient_wallet = await WalletService.get_or_create_wallet(db, recipient_id)
        if recipient_wallet.currency != sender_wallet.currency:
            return ServiceResult.fail(
                ErrorKind.INVALID_RECIPIENT,
                f"Recipient wallet holds {recipient_wallet.currency}, not {sender_wallet.currency}",
            )

        reference = f"TRF-{uuid.uuid4().hex[:12].upper()}"
        try:
            outcome = await WalletService._apply_debit(db, sender_wallet, amount)
            if not outcome.ok:
                await db.rollback()
                log.info(f"Transfer {reference} from user {sender_id} rejected: {outcome.reason}")
                return outcome
            sender_wallet = outcome.value
            credited = await WalletService._apply_credit(db, recipient_wallet, amount)
            if not credited.ok:
                await db.rollback()
                log.info(f"Transfer {reference} from user {sender_id} rejected: {credited.reason}")
                return credited
            recipient_wallet = credited.value

            sender_entry = await LedgerService.record_entry(
                db,
                user_id=sender_id,
                amount=amount,
                entry_type="expense",
                category="wallet_transfer",
                description=description or "Transfer to user",
                reference=recipient_id,
                notes=f"{reference}: sent to user {recipient_id}. New balance: {_money(sender_wallet, sender_wallet.balance)}",
            )
            recipient_entry = await LedgerService.record_entry(
                db,
                user_id=recipient_id,
                amount=amount,
                entry_type="income",
                category="wallet_transfer",
                description=description or "Transfer from user",
                reference=sender_id,
                notes=f"{reference}: received from user {sender_id}. New balance: {_money(recipient_wallet, recipient_wallet.balance)}",
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            log.exception(f"Transfer {reference} from user {sender_id} to {recipient_id} rolled back")
            return ServiceResult.fail(
                ErrorKind.TRANSFER_FAILED,
                "Transfer could not be completed. No funds were moved, please try again.",
            )

        log.info(f"Transfer {reference}: {amount} from user {sender_id} to user {recipient_id}")
        return ServiceResult.success({
            "sender_wallet": sender_wallet,
            "recipient_wallet": recipient_wallet,
            "sender_transaction": sender_entry,
            "recipient_transaction": recipient_entry,
        })

    # ------------------------------------------------------------------
    # Balance and limits
    # ------------------------------------------------------------------
    @staticmethod
    async def get_balance(db: AsyncSession, user_id: int) -> Dict:
        wallet = await WalletService.get_or_create_wallet(db, user_id)
        return {
            "balance": wallet.balance,
            "currency": wallet.currency,
            "todaySpent": wallet.today_spent,
            "dailyLimit": wallet.daily_limit,
            "availableToday": wallet.available_today,
        }

    @staticmethod
    async def get_limits(db: AsyncSession, user_id: int) -> Dict:
        wallet = await WalletService.get_or_create_wallet(db, user_id)
        return {
            "daily": wallet.daily_limit,
            "perTransaction": wallet.per_transaction_limit,
            "todaySpent": wallet.today_spent,
            "availableToday": wallet.available_today,
        }

    @staticmethod
    async def update_limits(
        db: AsyncSession,
        user_id: int,
        daily_limit=None,
        per_transaction_limit=None,
    ) -> ServiceResult:
        values = {}
        if daily_limit is not None:
            parsed = parse_amount(daily_limit)
            if parsed is None:
                return ServiceResult.fail(ErrorKind.INVALID_LIMIT, "Daily limit must be a positive amount")
            values["daily_limit"] = parsed
        if per_transaction_limit is not None:
            parsed = parse_amount(per_transaction_limit)
            if parsed is None:
                return ServiceResult.fail(ErrorKind.INVALID_LIMIT, "Per-transaction limit must be a positive amount")
            values["per_transaction_limit"] = parsed

        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        daily = values.get("daily_limit", wallet.daily_limit)
        per_transaction = values.get("per_transaction_limit", wallet.per_transaction_limit)
        if per_transaction > daily:
            return ServiceResult.fail(ErrorKind.INVALID_LIMIT, "Per-transaction limit cannot exceed the daily limit")

        if values:
            await db.execute(
                update(Wallet)
                .where(Wallet.id == wallet.id)
                .values(updated_at=utcnow(), **values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            wallet = await _load_wallet(db, Wallet.id == wallet.id)
            log.info(f"Limits updated for wallet {wallet.id}: daily={wallet.daily_limit} per_tx={wallet.per_transaction_limit}")
        return ServiceResult.success(wallet)

    # ------------------------------------------------------------------
    # Freeze (wallets are never deleted)
    # ------------------------------------------------------------------
    @staticmethod
    async def freeze_wallet(db: AsyncSession, user_id: int, reason: Optional[str] = None) -> ServiceResult:
        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")
        wallet.is_frozen = True
        wallet.frozen_reason = reason
        wallet.frozen_at = utcnow()
        await db.commit()
        log.warning(f"Wallet {wallet.id} frozen: {reason or 'no reason given'}")
        return ServiceResult.success(wallet)

    @staticmethod
    async def unfreeze_wallet(db: AsyncSession, user_id: int) -> ServiceResult:
        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")
        wallet.is_frozen = False
        wallet.frozen_reason = None
        wallet.frozen_at = None
        await db.commit()
        log.info(f"Wallet {wallet.id} unfrozen")
        return ServiceResult.success(wallet)

    # ------------------------------------------------------------------
    # Connected payment accounts
    # ------------------------------------------------------------------
    @staticmethod
    async def list_connected_accounts(db: AsyncSession, user_id: int) -> List[ConnectedAccount]:
        wallet = await WalletService.get_wallet(db, user_id)
        return list(wallet.connected_accounts) if wallet else []

    @staticmethod
    async def connect_account(
        db: AsyncSession,
        user_id: int,
        account_type: str,
        account_number: str,
        account_name: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> ServiceResult:
        account_type = (account_type or "").lower()
        if account_type not in CONNECTED_ACCOUNT_TYPES:
            return ServiceResult.fail(
                ErrorKind.INVALID_ACCOUNT,
                f"Account type must be one of: {', '.join(CONNECTED_ACCOUNT_TYPES)}",
            )
        account_number = (account_number or "").strip()
        if not account_number:
            return ServiceResult.fail(ErrorKind.INVALID_ACCOUNT, "Type and account number required")

        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        existing = [
            acc for acc in wallet.connected_accounts
            if acc.account_number == account_number and acc.account_type == account_type
        ]
        if existing:
            return ServiceResult.fail(ErrorKind.ALREADY_EXISTS, "Account already connected")

        account = ConnectedAccount(
            wallet_id=wallet.id,
            account_type=account_type,
            account_name=account_name,
            account_number=account_number,
            provider=provider,
            is_default=len(wallet.connected_accounts) == 0,
            verified=False,
        )
        db.add(account)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            return ServiceResult.fail(ErrorKind.ALREADY_EXISTS, "Account already connected")
        await db.refresh(account)
        log.info(f"{account_type} account connected to wallet {wallet.id}")
        return ServiceResult.success(account)

    @staticmethod
    async def disconnect_account(db: AsyncSession, user_id: int, account_id: int) -> ServiceResult:
        wallet = await WalletService.get_wallet(db, user_id)
        if wallet is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Wallet not found")

        account = next((acc for acc in wallet.connected_accounts if acc.id == account_id), None)
        if account is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Connected account not found")

        was_default = account.is_default
        wallet.connected_accounts.remove(account)
        if was_default and wallet.connected_accounts:
            wallet.connected_accounts[0].is_default = True
        await db.commit()
        log.info(f"Connected account {account_id} removed from wallet {wallet.id}")
        return ServiceResult.success(True)

    # ------------------------------------------------------------------
    # Statement summary
    # ------------------------------------------------------------------
    @staticmethod
    async def get_summary(db: AsyncSession, user_id: int) -> Dict:
        wallet = await WalletService.get_or_create_wallet(db, user_id)
        rows = await LedgerService.summarize(db, user_id)
        return {
            "currency": wallet.currency,
            "balance": wallet.balance,
            "totalIncome": sum((r["total"] for r in rows if r["type"] == "income"), Decimal("0")),
            "totalExpense": sum((r["total"] for r in rows if r["type"] == "expense"), Decimal("0")),
            "byCategory": rows,
        }

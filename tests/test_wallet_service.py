"""
Test Wallet Service
Balance, limit, PIN and transfer rules against a real database session
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

import wallet_service
from ledger_service import LedgerService
from models import Wallet
from service_result import ErrorKind
from wallet_service import WalletService, parse_amount


async def _wallet(db, user, daily=None, per_transaction=None, funds=None):
    wallet = await WalletService.get_or_create_wallet(db, user.id)
    if daily is not None:
        result = await WalletService.update_limits(
            db, user.id, daily_limit=daily, per_transaction_limit=per_transaction
        )
        assert result.ok, result.reason
    if funds is not None:
        assert (await WalletService.credit(db, wallet, funds)).ok
    return await WalletService.get_wallet(db, user.id)


class TestParseAmount:
    """Test amount normalisation"""

    def test_accepts_two_decimal_amounts(self):
        assert parse_amount("250.50") == Decimal("250.50")
        assert parse_amount(10) == Decimal("10.00")

    @pytest.mark.parametrize("value", [0, -5, "abc", "1.234", None, "NaN", "Infinity", True])
    def test_rejects_unusable_amounts(self, value):
        assert parse_amount(value) is None


class TestWalletLifecycle:
    """Test lazy wallet creation"""

    @pytest.mark.asyncio
    async def test_wallet_created_with_defaults(self, db, owner):
        wallet = await WalletService.get_or_create_wallet(db, owner.id)

        assert wallet.user_id == owner.id
        assert wallet.balance == Decimal("0")
        assert wallet.currency == "KES"
        assert wallet.daily_limit == Decimal("100000")
        assert wallet.per_transaction_limit == Decimal("50000")
        assert wallet.today_spent == Decimal("0")
        assert wallet.last_reset_date == wallet_service.current_day()
        assert wallet.is_active and not wallet.is_frozen
        assert wallet.connected_accounts == []

    @pytest.mark.asyncio
    async def test_get_or_create_returns_same_wallet(self, db, owner):
        first = await WalletService.get_or_create_wallet(db, owner.id)
        second = await WalletService.get_or_create_wallet(db, owner.id)
        assert first.id == second.id


class TestDebitRules:
    """Test status, limit and balance checks and their order"""

    @pytest.mark.asyncio
    async def test_example_scenario(self, db, owner):
        """balance 0, daily 1000, per-transaction 500"""
        wallet = await _wallet(db, owner, daily=1000, per_transaction=500)

        credited = await WalletService.credit(db, wallet, 600)
        assert credited.ok
        assert credited.value.balance == Decimal("600")

        debited = await WalletService.debit(db, wallet, 500)
        assert debited.ok
        assert debited.value.balance == Decimal("100")
        assert debited.value.today_spent == Decimal("500")

        rejected = await WalletService.debit(db, wallet, 500)
        assert not rejected.ok
        assert rejected.error == ErrorKind.INSUFFICIENT_BALANCE

        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.balance == Decimal("100")
        assert wallet.today_spent == Decimal("500")

    @pytest.mark.asyncio
    async def test_per_transaction_limit_checked_before_daily_and_balance(self, db, owner):
        wallet = await _wallet(db, owner, daily=1000, per_transaction=500, funds=100)

        result = await WalletService.debit(db, wallet, 1500)

        assert result.error == ErrorKind.EXCEEDS_PER_TRANSACTION_LIMIT
        assert "500.00" in result.reason

    @pytest.mark.asyncio
    async def test_daily_limit_checked_before_balance(self, db, owner):
        wallet = await _wallet(db, owner, daily=1000, per_transaction=500, funds=1100)
        assert (await WalletService.debit(db, wallet, 500)).ok
        assert (await WalletService.debit(db, wallet, 300)).ok

        # 800 spent, 300 left: 400 breaks both the daily cap and the balance
        result = await WalletService.debit(db, wallet, 400)

        assert result.error == ErrorKind.EXCEEDS_DAILY_LIMIT

    @pytest.mark.asyncio
    async def test_frozen_wallet_rejected_first(self, db, owner):
        wallet = await _wallet(db, owner, funds=100)
        assert (await WalletService.freeze_wallet(db, owner.id, "chargeback review")).ok

        result = await WalletService.debit(db, wallet, 1_000_000)

        assert result.error == ErrorKind.WALLET_FROZEN

    @pytest.mark.asyncio
    async def test_unfrozen_wallet_can_spend_again(self, db, owner):
        wallet = await _wallet(db, owner, funds=100)
        await WalletService.freeze_wallet(db, owner.id)
        unfrozen = await WalletService.unfreeze_wallet(db, owner.id)

        assert not unfrozen.value.is_frozen
        assert unfrozen.value.frozen_reason is None
        assert (await WalletService.debit(db, wallet, 50)).ok

    @pytest.mark.asyncio
    async def test_inactive_wallet_rejected(self, db, owner):
        wallet = await _wallet(db, owner, funds=100)
        await db.execute(update(Wallet).where(Wallet.id == wallet.id).values(is_active=False))
        await db.commit()

        result = await WalletService.debit(db, wallet, 10)

        assert result.error == ErrorKind.WALLET_INACTIVE

    @pytest.mark.asyncio
    async def test_invalid_amount_rejected(self, db, owner):
        wallet = await _wallet(db, owner, funds=100)

        for amount in (0, -1, "1.005"):
            assert (await WalletService.debit(db, wallet, amount)).error == ErrorKind.INVALID_AMOUNT
            assert (await WalletService.credit(db, wallet, amount)).error == ErrorKind.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_conditional_update_holds_when_precheck_is_stale(self, db, owner, monkeypatch):
        """The UPDATE itself refuses an overdraft even if the snapshot check passed"""
        wallet = await _wallet(db, owner, funds=100)
        monkeypatch.setattr(WalletService, "check_debit", staticmethod(lambda wallet, amount: None))

        result = await WalletService.debit(db, wallet, 500)

        assert not result.ok
        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.balance == Decimal("100")
        assert wallet.today_spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_conditional_update_enforces_daily_cap(self, db, owner, monkeypatch):
        wallet = await _wallet(db, owner, daily=1000, per_transaction=1000, funds=5000)
        monkeypatch.setattr(WalletService, "check_debit", staticmethod(lambda wallet, amount: None))

        assert (await WalletService.debit(db, wallet, 1000)).ok
        assert not (await WalletService.debit(db, wallet, 1)).ok

        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.today_spent == Decimal("1000")
        assert wallet.balance == Decimal("4000")


class TestDailyReset:
    """Test calendar-day rollover of todaySpent"""

    @pytest.mark.asyncio
    async def test_rollover_resets_spend_once(self, db, owner, monkeypatch):
        today = {"value": date(2026, 3, 1)}
        monkeypatch.setattr(wallet_service, "current_day", lambda: today["value"])

        wallet = await _wallet(db, owner, daily=1000, per_transaction=1000, funds=2000)
        assert (await WalletService.debit(db, wallet, 1000)).ok
        assert (await WalletService.debit(db, wallet, 1)).error == ErrorKind.EXCEEDS_DAILY_LIMIT

        today["value"] = date(2026, 3, 2)
        assert await WalletService.reset_daily_limit_if_needed(db, wallet) is True
        assert await WalletService.reset_daily_limit_if_needed(db, wallet) is False

        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.today_spent == Decimal("0")
        assert wallet.last_reset_date == date(2026, 3, 2)
        assert wallet.balance == Decimal("1000")
        assert (await WalletService.debit(db, wallet, 1000)).ok

    @pytest.mark.asyncio
    async def test_limits_view_triggers_reset(self, db, owner, monkeypatch):
        today = {"value": date(2026, 3, 1)}
        monkeypatch.setattr(wallet_service, "current_day", lambda: today["value"])
        wallet = await _wallet(db, owner, funds=500)
        await WalletService.debit(db, wallet, 200)

        today["value"] = date(2026, 3, 5)
        limits = await WalletService.get_limits(db, owner.id)

        assert limits["todaySpent"] == Decimal("0")
        assert limits["availableToday"] == limits["daily"]


class TestPin:
    """Test PIN setting, changing and verification"""

    @pytest.mark.asyncio
    async def test_pin_is_stored_hashed(self, db, owner):
        await _wallet(db, owner)
        assert (await WalletService.set_pin(db, owner.id, "1234")).ok

        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.has_pin
        assert wallet.hashed_pin != "1234"

    @pytest.mark.asyncio
    async def test_short_pin_rejected(self, db, owner):
        await _wallet(db, owner)
        assert (await WalletService.set_pin(db, owner.id, "12")).error == ErrorKind.INVALID_PIN_FORMAT

    @pytest.mark.asyncio
    async def test_changing_pin_requires_current_pin(self, db, owner):
        await _wallet(db, owner)
        await WalletService.set_pin(db, owner.id, "1234")

        assert (await WalletService.set_pin(db, owner.id, "5678")).error == ErrorKind.PIN_REQUIRED
        assert (await WalletService.set_pin(db, owner.id, "5678", "0000")).error == ErrorKind.INVALID_PIN
        assert (await WalletService.set_pin(db, owner.id, "5678", "1234")).ok

        assert (await WalletService.verify_pin(db, owner.id, "5678")).value is True
        assert (await WalletService.verify_pin(db, owner.id, "1234")).value is False

    @pytest.mark.asyncio
    async def test_verify_without_pin(self, db, owner):
        await _wallet(db, owner)
        assert (await WalletService.verify_pin(db, owner.id, "1234")).error == ErrorKind.PIN_NOT_SET

    @pytest.mark.asyncio
    async def test_set_pin_without_wallet(self, db, owner):
        assert (await WalletService.set_pin(db, owner.id, "1234")).error == ErrorKind.NOT_FOUND


class TestDepositAndWithdraw:
    """Test ledger-writing operations"""

    @pytest.mark.asyncio
    async def test_deposit_writes_income_entry(self, db, owner):
        result = await WalletService.deposit(db, owner.id, "250.50", source="mpesa", reference="QH12XYZ")

        assert result.ok
        wallet, entry = result.value["wallet"], result.value["transaction"]
        assert wallet.balance == Decimal("250.50")
        assert wallet.total_deposits == Decimal("250.50")
        assert wallet.total_transactions == 1
        assert entry.type == "income"
        assert entry.category == "wallet_deposit"
        assert entry.amount == Decimal("250.50")
        assert entry.reference == "QH12XYZ"
        assert entry.description == "Wallet deposit from mpesa"

    @pytest.mark.asyncio
    async def test_withdraw_without_wallet(self, db, owner):
        result = await WalletService.withdraw(db, owner.id, 10)
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_withdraw_is_pin_gated(self, db, owner):
        await WalletService.deposit(db, owner.id, 1000)
        await WalletService.set_pin(db, owner.id, "4321")

        assert (await WalletService.withdraw(db, owner.id, 100)).error == ErrorKind.PIN_REQUIRED
        assert (await WalletService.withdraw(db, owner.id, 100, pin="1111")).error == ErrorKind.INVALID_PIN

        result = await WalletService.withdraw(
            db, owner.id, 100, destination="M-Pesa", pin="4321", account_number="0700000001"
        )
        assert result.ok
        assert result.value["wallet"].balance == Decimal("900")
        assert result.value["transaction"].type == "expense"
        assert result.value["transaction"].category == "wallet_withdrawal"
        assert result.value["transaction"].reference == "0700000001"

    @pytest.mark.asyncio
    async def test_rejected_withdrawal_writes_no_entry(self, db, owner):
        await WalletService.deposit(db, owner.id, 50)

        result = await WalletService.withdraw(db, owner.id, 80)

        assert result.error == ErrorKind.INSUFFICIENT_BALANCE
        page = await LedgerService.list_wallet_entries(db, owner.id)
        assert page["total"] == 1

    @pytest.mark.asyncio
    async def test_deposit_cannot_push_balance_past_ceiling(self, db, owner):
        wallet = await WalletService.get_or_create_wallet(db, owner.id)
        await db.execute(
            update(Wallet).where(Wallet.id == wallet.id).values(balance=Decimal("999999999990.00"))
        )
        await db.commit()

        result = await WalletService.deposit(db, owner.id, 20)

        assert result.error == ErrorKind.INVALID_AMOUNT
        wallet = await WalletService.get_wallet(db, owner.id)
        assert wallet.balance == Decimal("999999999990.00")
        assert (await LedgerService.list_wallet_entries(db, owner.id))["total"] == 0


class TestTransfer:
    """Test wallet-to-wallet transfers"""

    @pytest.mark.asyncio
    async def test_transfer_moves_funds_and_writes_both_entries(self, db, owner, customer):
        await WalletService.deposit(db, owner.id, 1000)

        result = await WalletService.transfer(db, owner.id, customer.id, 400, description="Refund")

        assert result.ok
        assert result.value["sender_wallet"].balance == Decimal("600")
        assert result.value["recipient_wallet"].balance == Decimal("400")
        sender_entry = result.value["sender_transaction"]
        recipient_entry = result.value["recipient_transaction"]
        assert (sender_entry.type, sender_entry.category) == ("expense", "wallet_transfer")
        assert (recipient_entry.type, recipient_entry.category) == ("income", "wallet_transfer")
        assert sender_entry.user_id == owner.id
        assert recipient_entry.user_id == customer.id
        assert sender_entry.reference == str(customer.id)

    @pytest.mark.asyncio
    async def test_transfer_validation(self, db, owner, customer):
        await WalletService.deposit(db, owner.id, 100)

        assert (await WalletService.transfer(db, owner.id, owner.id, 10)).error == ErrorKind.INVALID_RECIPIENT
        assert (await WalletService.transfer(db, owner.id, None, 10)).error == ErrorKind.MISSING_RECIPIENT
        assert (await WalletService.transfer(db, owner.id, 9999, 10)).error == ErrorKind.NOT_FOUND
        assert (await WalletService.transfer(db, owner.id, customer.id, -3)).error == ErrorKind.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_insufficient_transfer_leaves_recipient_untouched(self, db, owner, customer):
        await WalletService.deposit(db, owner.id, 100)

        result = await WalletService.transfer(db, owner.id, customer.id, 150)

        assert result.error == ErrorKind.INSUFFICIENT_BALANCE
        recipient = await WalletService.get_wallet(db, customer.id)
        assert recipient.balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_transfer_into_full_wallet_is_rejected_whole(self, db, owner, customer):
        await WalletService.deposit(db, owner.id, 100)
        recipient = await WalletService.get_or_create_wallet(db, customer.id)
        await db.execute(
            update(Wallet).where(Wallet.id == recipient.id).values(balance=Decimal("999999999990.00"))
        )
        await db.commit()

        result = await WalletService.transfer(db, owner.id, customer.id, 50)

        assert result.error == ErrorKind.INVALID_AMOUNT
        sender = await WalletService.get_wallet(db, owner.id)
        assert sender.balance == Decimal("100")
        assert sender.today_spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_transfer_requires_sender_pin(self, db, owner, customer):
        await WalletService.deposit(db, owner.id, 100)
        await WalletService.set_pin(db, owner.id, "2468")

        assert (await WalletService.transfer(db, owner.id, customer.id, 10)).error == ErrorKind.PIN_REQUIRED
        assert (await WalletService.transfer(db, owner.id, customer.id, 10, pin="2468")).ok

    @pytest.mark.asyncio
    async def test_failed_ledger_write_rolls_back_both_wallets(self, db, owner, customer, monkeypatch):
        await WalletService.deposit(db, owner.id, 1000)
        await WalletService.get_or_create_wallet(db, customer.id)

        original = LedgerService.record_entry
        calls = []

        async def flaky_record_entry(session, **kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise SQLAlchemyError("disk I/O error")
            return await original(session, **kwargs)

        monkeypatch.setattr(LedgerService, "record_entry", flaky_record_entry)

        result = await WalletService.transfer(db, owner.id, customer.id, 400)

        assert result.error == ErrorKind.TRANSFER_FAILED
        sender = await WalletService.get_wallet(db, owner.id)
        recipient = await WalletService.get_wallet(db, customer.id)
        assert sender.balance == Decimal("1000")
        assert sender.today_spent == Decimal("0")
        assert recipient.balance == Decimal("0")
        assert (await LedgerService.list_wallet_entries(db, owner.id))["total"] == 1
        assert (await LedgerService.list_wallet_entries(db, customer.id))["total"] == 0


class TestLimitsAndAccounts:
    """Test limit updates and connected payment accounts"""

    @pytest.mark.asyncio
    async def test_update_limits_validation(self, db, owner):
        await _wallet(db, owner)

        assert (await WalletService.update_limits(db, owner.id, daily_limit=-10)).error == ErrorKind.INVALID_LIMIT
        assert (await WalletService.update_limits(db, owner.id, daily_limit=100)).error == ErrorKind.INVALID_LIMIT

        result = await WalletService.update_limits(db, owner.id, daily_limit=2000, per_transaction_limit=750)
        assert result.ok
        assert result.value.daily_limit == Decimal("2000")
        assert result.value.per_transaction_limit == Decimal("750")

    @pytest.mark.asyncio
    async def test_update_limits_without_wallet(self, db, owner):
        result = await WalletService.update_limits(db, owner.id, daily_limit=2000)
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_connect_and_disconnect_accounts(self, db, owner):
        await _wallet(db, owner)

        mpesa = await WalletService.connect_account(db, owner.id, "mpesa", "0700000001", provider="Safaricom")
        bank = await WalletService.connect_account(db, owner.id, "bank", "0110022003", account_name="Equity")
        assert mpesa.value.is_default is True
        assert bank.value.is_default is False

        duplicate = await WalletService.connect_account(db, owner.id, "mpesa", "0700000001")
        assert duplicate.error == ErrorKind.ALREADY_EXISTS
        unknown = await WalletService.connect_account(db, owner.id, "crypto", "abc")
        assert unknown.error == ErrorKind.INVALID_ACCOUNT

        assert (await WalletService.disconnect_account(db, owner.id, mpesa.value.id)).ok
        remaining = await WalletService.list_connected_accounts(db, owner.id)
        assert [acc.account_type for acc in remaining] == ["bank"]
        assert remaining[0].is_default is True

        missing = await WalletService.disconnect_account(db, owner.id, mpesa.value.id)
        assert missing.error == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_summary_totals(self, db, owner):
        await WalletService.deposit(db, owner.id, 1000)
        await WalletService.withdraw(db, owner.id, 300)

        summary = await WalletService.get_summary(db, owner.id)

        assert summary["balance"] == Decimal("700")
        assert summary["totalIncome"] == Decimal("1000")
        assert summary["totalExpense"] == Decimal("300")
        assert {row["category"] for row in summary["byCategory"]} == {"wallet_deposit", "wallet_withdrawal"}

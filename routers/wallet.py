"""Wallet API routes: balance, deposits, withdrawals, transfers, PIN and limits."""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

import schemas
from deps import AdminUserDep, CurrentUserDep, SessionDep, SummaryCacheDep, get_current_user
from ledger_service import LedgerService
from notification_service import NotificationService
from service_result import unwrap
from wallet_service import WalletService

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/wallet",
    tags=["wallet"],
    dependencies=[Depends(get_current_user)]
)


def summary_key(user_id: int) -> str:
    return f"wallet-summary:{user_id}"


def _entry(entry) -> dict:
    return schemas.FinancialTransaction.model_validate(entry).model_dump(mode="json")


# -----------------------
#  WALLET / BALANCE
# -----------------------
@router.get("", response_model=schemas.Wallet)
async def get_wallet(current_user: CurrentUserDep, db_session: SessionDep):
    """Return the caller's wallet, creating it on first access."""
    return await WalletService.get_or_create_wallet(db_session, current_user.id)


@router.get("/balance", response_model=schemas.WalletBalance)
async def get_balance(current_user: CurrentUserDep, db_session: SessionDep):
    return await WalletService.get_balance(db_session, current_user.id)


@router.get("/summary", response_model=schemas.WalletSummary)
async def get_summary(current_user: CurrentUserDep, db_session: SessionDep, cache: SummaryCacheDep):
    return await cache.get_or_load(
        summary_key(current_user.id),
        lambda: WalletService.get_summary(db_session, current_user.id),
    )


@router.get("/transactions", response_model=schemas.TransactionPage)
async def list_transactions(
    current_user: CurrentUserDep,
    db_session: SessionDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[Literal["income", "expense"]] = None,
):
    return await LedgerService.list_wallet_entries(db_session, current_user.id, page, limit, type)


# -----------------------
#  MONEY MOVEMENT
# -----------------------
@router.post("/deposit", response_model=schemas.WalletMovementResponse)
async def deposit(
    payload: schemas.DepositRequest,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    cache: SummaryCacheDep,
    background_tasks: BackgroundTasks,
):
    outcome = unwrap(await WalletService.deposit(
        db_session,
        current_user.id,
        payload.amount,
        source=payload.source,
        reference=payload.reference,
        description=payload.description,
    ))
    wallet, entry = outcome["wallet"], outcome["transaction"]
    cache.invalidate(summary_key(current_user.id))
    background_tasks.add_task(
        NotificationService.wallet_updated, current_user.id, float(wallet.balance), _entry(entry), "deposit"
    )
    return {
        "message": "Deposit successful",
        "balance": wallet.balance,
        "currency": wallet.currency,
        "transaction": entry,
    }


@router.post("/withdraw", response_model=schemas.WalletMovementResponse)
async def withdraw(
    payload: schemas.WithdrawRequest,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    cache: SummaryCacheDep,
    background_tasks: BackgroundTasks,
):
    outcome = unwrap(await WalletService.withdraw(
        db_session,
        current_user.id,
        payload.amount,
        destination=payload.destination,
        pin=payload.pin,
        description=payload.description,
        account_number=payload.account_number,
    ))
    wallet, entry = outcome["wallet"], outcome["transaction"]
    cache.invalidate(summary_key(current_user.id))
    background_tasks.add_task(
        NotificationService.wallet_updated, current_user.id, float(wallet.balance), _entry(entry), "withdrawal"
    )
    return {
        "message": "Withdrawal successful",
        "balance": wallet.balance,
        "currency": wallet.currency,
        "transaction": entry,
    }


@router.post("/transfer", response_model=schemas.TransferResponse)
async def transfer(
    payload: schemas.TransferRequest,
    current_user: CurrentUserDep,
    db_session: SessionDep,
    cache: SummaryCacheDep,
    background_tasks: BackgroundTasks,
):
    """
    Move funds to another user's wallet.

    Debit, credit and both ledger entries commit together; the response
    carries the sender's new balance and both entries.
    """
    outcome = unwrap(await WalletService.transfer(
        db_session,
        current_user.id,
        payload.recipient_id,
        payload.amount,
        pin=payload.pin,
        description=payload.description,
    ))
    sender_wallet = outcome["sender_wallet"]
    recipient_wallet = outcome["recipient_wallet"]
    sender_entry = outcome["sender_transaction"]
    recipient_entry = outcome["recipient_transaction"]

    cache.invalidate(summary_key(current_user.id))
    cache.invalidate(summary_key(recipient_wallet.user_id))
    background_tasks.add_task(
        NotificationService.wallet_updated,
        current_user.id, float(sender_wallet.balance), _entry(sender_entry), "transfer_out",
    )
    background_tasks.add_task(
        NotificationService.wallet_updated,
        recipient_wallet.user_id, float(recipient_wallet.balance), _entry(recipient_entry), "transfer_in",
    )
    return {
        "message": "Transfer successful",
        "senderBalance": sender_wallet.balance,
        "currency": sender_wallet.currency,
        "senderTransaction": sender_entry,
        "recipientTransaction": recipient_entry,
    }


# -----------------------
#  PIN
# -----------------------
@router.post("/pin")
async def set_pin(payload: schemas.SetPinRequest, current_user: CurrentUserDep, db_session: SessionDep):
    unwrap(await WalletService.set_pin(db_session, current_user.id, payload.pin, payload.current_pin))
    return {"message": "PIN set successfully"}


@router.post("/verify-pin", response_model=schemas.VerifyPinResponse)
async def verify_pin(payload: schemas.VerifyPinRequest, current_user: CurrentUserDep, db_session: SessionDep):
    verified = unwrap(await WalletService.verify_pin(db_session, current_user.id, payload.pin))
    return {"verified": verified}


# -----------------------
#  LIMITS
# -----------------------
@router.get("/limits", response_model=schemas.WalletLimits)
async def get_limits(current_user: CurrentUserDep, db_session: SessionDep):
    return await WalletService.get_limits(db_session, current_user.id)


@router.put("/limits", response_model=schemas.WalletLimits)
async def update_limits(payload: schemas.UpdateLimitsRequest, current_user: CurrentUserDep, db_session: SessionDep):
    unwrap(await WalletService.update_limits(
        db_session,
        current_user.id,
        daily_limit=payload.daily_limit,
        per_transaction_limit=payload.per_transaction_limit,
    ))
    return await WalletService.get_limits(db_session, current_user.id)


# -----------------------
#  CONNECTED ACCOUNTS
# -----------------------
@router.get("/connected-accounts", response_model=List[schemas.ConnectedAccount])
async def list_connected_accounts(current_user: CurrentUserDep, db_session: SessionDep):
    return await WalletService.list_connected_accounts(db_session, current_user.id)


@router.post("/connected-accounts", response_model=schemas.ConnectedAccount, status_code=status.HTTP_201_CREATED)
async def connect_account(payload: schemas.ConnectAccountRequest, current_user: CurrentUserDep, db_session: SessionDep):
    return unwrap(await WalletService.connect_account(
        db_session,
        current_user.id,
        payload.account_type,
        payload.account_number,
        account_name=payload.account_name,
        provider=payload.provider,
    ))


@router.delete("/connected-accounts/{account_id}")
async def disconnect_account(account_id: int, current_user: CurrentUserDep, db_session: SessionDep):
    unwrap(await WalletService.disconnect_account(db_session, current_user.id, account_id))
    return {"message": "Account disconnected"}


# -----------------------
#  ADMIN
# -----------------------
@router.post("/admin/{user_id}/freeze", response_model=schemas.Wallet)
async def freeze_wallet(
    user_id: int,
    payload: schemas.FreezeWalletRequest,
    admin_user: AdminUserDep,
    db_session: SessionDep,
):
    log.warning(f"Admin {admin_user.id} freezing wallet of user {user_id}")
    return unwrap(await WalletService.freeze_wallet(db_session, user_id, payload.reason))


@router.post("/admin/{user_id}/unfreeze", response_model=schemas.Wallet)
async def unfreeze_wallet(user_id: int, admin_user: AdminUserDep, db_session: SessionDep):
    log.info(f"Admin {admin_user.id} unfreezing wallet of user {user_id}")
    return unwrap(await WalletService.unfreeze_wallet(db_session, user_id))


@router.post("/admin/transactions/{entry_id}/status", response_model=schemas.FinancialTransaction)
async def update_transaction_status(
    entry_id: int,
    payload: schemas.TransactionStatusRequest,
    admin_user: AdminUserDep,
    db_session: SessionDep,
    cache: SummaryCacheDep,
    background_tasks: BackgroundTasks,
):
    """Settle a pending entry, e.g. from a payment gateway callback."""
    entry = unwrap(await LedgerService.transition_status(db_session, entry_id, payload.status))
    cache.invalidate(summary_key(entry.user_id))
    background_tasks.add_task(
        NotificationService.payment_result, entry.user_id, entry.status == "completed", _entry(entry)
    )
    return entry

"""
Test Ledger Service
Entry recording, paging, status transitions and summaries
"""

from decimal import Decimal

import pytest

from ledger_service import LedgerService
from service_result import ErrorKind


async def _record(db, user, amount, entry_type="income", category="wallet_deposit", status="completed"):
    entry = await LedgerService.record_entry(
        db,
        user_id=user.id,
        amount=Decimal(amount),
        entry_type=entry_type,
        category=category,
        description=f"{category} {amount}",
        status=status,
    )
    await db.commit()
    return entry


class TestRecordEntry:
    """Test entry validation"""

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db, owner):
        with pytest.raises(ValueError):
            await LedgerService.record_entry(db, owner.id, Decimal("0"), "income", "wallet_deposit", "zero")

    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self, db, owner):
        with pytest.raises(ValueError):
            await LedgerService.record_entry(db, owner.id, Decimal("5"), "refund", "wallet_deposit", "bad")

    @pytest.mark.asyncio
    async def test_rejects_unknown_category_and_status(self, db, owner):
        with pytest.raises(ValueError):
            await LedgerService.record_entry(db, owner.id, Decimal("5"), "income", "lottery", "bad")
        with pytest.raises(ValueError):
            await LedgerService.record_entry(
                db, owner.id, Decimal("5"), "income", "wallet_deposit", "bad", status="settled"
            )

    @pytest.mark.asyncio
    async def test_reference_stored_as_text(self, db, owner):
        entry = await LedgerService.record_entry(
            db, owner.id, Decimal("5"), "expense", "wallet_transfer", "to customer", reference=42
        )
        await db.commit()
        assert entry.reference == "42"
        assert entry.status == "completed"


class TestListWalletEntries:
    """Test paging over wallet entries"""

    @pytest.mark.asyncio
    async def test_paging_newest_first(self, db, owner):
        for amount in ("10", "20", "30"):
            await _record(db, owner, amount)

        page = await LedgerService.list_wallet_entries(db, owner.id, page=1, limit=2)

        assert page["total"] == 3
        assert page["totalPages"] == 2
        assert page["currentPage"] == 1
        assert [e.amount for e in page["transactions"]] == [Decimal("30"), Decimal("20")]

        second = await LedgerService.list_wallet_entries(db, owner.id, page=2, limit=2)
        assert [e.amount for e in second["transactions"]] == [Decimal("10")]

    @pytest.mark.asyncio
    async def test_filters_by_type_and_wallet_categories(self, db, owner, customer):
        await _record(db, owner, "100")
        await _record(db, owner, "40", entry_type="expense", category="wallet_withdrawal")
        await _record(db, owner, "999", category="sales")
        await _record(db, customer, "15")

        expenses = await LedgerService.list_wallet_entries(db, owner.id, entry_type="expense")
        everything = await LedgerService.list_wallet_entries(db, owner.id)

        assert expenses["total"] == 1
        assert everything["total"] == 2

    @pytest.mark.asyncio
    async def test_empty_ledger(self, db, owner):
        page = await LedgerService.list_wallet_entries(db, owner.id)
        assert page["transactions"] == []
        assert page["totalPages"] == 0


class TestTransitionStatus:
    """Test the pending -> final status machine"""

    @pytest.mark.asyncio
    async def test_pending_entry_can_complete(self, db, owner):
        entry = await _record(db, owner, "75", category="mpesa_payment", status="pending")

        result = await LedgerService.transition_status(db, entry.id, "completed")

        assert result.ok
        assert result.value.status == "completed"

    @pytest.mark.asyncio
    async def test_final_states_are_final(self, db, owner):
        entry = await _record(db, owner, "75", category="mpesa_payment", status="pending")
        await LedgerService.transition_status(db, entry.id, "failed")

        result = await LedgerService.transition_status(db, entry.id, "completed")

        assert result.error == ErrorKind.INVALID_STATUS_TRANSITION

    @pytest.mark.asyncio
    async def test_unknown_entry(self, db):
        result = await LedgerService.transition_status(db, 404, "completed")
        assert result.error == ErrorKind.NOT_FOUND


class TestSummarize:
    """Test grouped totals"""

    @pytest.mark.asyncio
    async def test_only_completed_entries_counted(self, db, owner):
        await _record(db, owner, "100")
        await _record(db, owner, "50")
        await _record(db, owner, "500", status="pending")
        await _record(db, owner, "30", entry_type="expense", category="wallet_withdrawal")

        rows = await LedgerService.summarize(db, owner.id)
        by_key = {(r["type"], r["category"]): r for r in rows}

        assert by_key[("income", "wallet_deposit")]["total"] == Decimal("150")
        assert by_key[("income", "wallet_deposit")]["count"] == 2
        assert by_key[("expense", "wallet_withdrawal")]["total"] == Decimal("30")

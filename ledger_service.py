"""
Ledger Service: Financial Transaction Records
==============================================

Every wallet balance mutation writes exactly one financial transaction per
affected user:

- credit   -> income entry
- debit    -> expense entry
- transfer -> one expense entry for the sender, one income entry for the
              recipient

Entries are append-only. The only permitted change is a status transition
out of 'pending', driven by asynchronous payment callbacks.
"""

import logging
import math
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    FinancialTransaction, TRANSACTION_CATEGORIES, TRANSACTION_STATUSES, TRANSACTION_TYPES,
    WALLET_CATEGORIES,
)
from service_result import ErrorKind, ServiceResult

log = logging.getLogger(__name__)

# Allowed status transitions
STATUS_TRANSITIONS = {
    "pending": {"completed", "failed", "cancelled"},
    "completed": set(),
    "failed": set(),
    "cancelled": set(),
}


class LedgerService:
    """Service for recording and reading financial transactions"""

    @staticmethod
    async def record_entry(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        entry_type: str,
        category: str,
        description: str,
        status: str = "completed",
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> FinancialTransaction:
        """
        Add one ledger entry to the session and flush it.

        The caller owns the commit so the entry lands in the same database
        transaction as the wallet mutation it records.

        Raises:
            ValueError: If amount <= 0 or type, category or status is unknown
        """
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")
        if entry_type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown entry type {entry_type}")
        if category not in TRANSACTION_CATEGORIES:
            raise ValueError(f"Unknown category {category}")
        if status not in TRANSACTION_STATUSES:
            raise ValueError(f"Unknown status {status}")

        entry = FinancialTransaction(
            user_id=user_id,
            description=description,
            amount=amount,
            type=entry_type,
            category=category,
            status=status,
            reference=str(reference) if reference is not None else None,
            notes=notes,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def get_entry(db: AsyncSession, entry_id: int) -> Optional[FinancialTransaction]:
        return await db.get(FinancialTransaction, entry_id)

    @staticmethod
    async def list_wallet_entries(
        db: AsyncSession,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        entry_type: Optional[str] = None,
    ) -> Dict:
        """Wallet-related entries for a user, newest first, with paging totals."""
        page = max(page, 1)
        limit = max(min(limit, 100), 1)

        conditions = [
            FinancialTransaction.user_id == user_id,
            FinancialTransaction.category.in_(WALLET_CATEGORIES),
        ]
        if entry_type:
            conditions.append(FinancialTransaction.type == entry_type)

        total_result = await db.execute(
            select(func.count(FinancialTransaction.id)).where(and_(*conditions))
        )
        total = total_result.scalar() or 0

        result = await db.execute(
            select(FinancialTransaction)
            .where(and_(*conditions))
            .order_by(FinancialTransaction.date.desc(), FinancialTransaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {
            "transactions": result.scalars().all(),
            "total": total,
            "currentPage": page,
            "totalPages": math.ceil(total / limit) if total else 0,
        }

    @staticmethod
    async def transition_status(db: AsyncSession, entry_id: int, new_status: str) -> ServiceResult:
        """
        Move a pending entry to completed, failed or cancelled.

        Completed, failed and cancelled entries are final.
        """
        entry = await LedgerService.get_entry(db, entry_id)
        if entry is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Transaction not found")

        allowed = STATUS_TRANSITIONS.get(entry.status, set())
        if new_status not in allowed:
            return ServiceResult.fail(
                ErrorKind.INVALID_STATUS_TRANSITION,
                f"Cannot move transaction from {entry.status} to {new_status}",
            )

        entry.status = new_status
        await db.commit()
        await db.refresh(entry)
        log.info(f"Ledger entry {entry_id} moved to {new_status}")
        return ServiceResult.success(entry)

    @staticmethod
    async def summarize(db: AsyncSession, user_id: int) -> List[Dict]:
        """Completed totals for a user grouped by type and category."""
        result = await db.execute(
            select(
                FinancialTransaction.type,
                FinancialTransaction.category,
                func.coalesce(func.sum(FinancialTransaction.amount), 0),
                func.count(FinancialTransaction.id),
            )
            .where(
                and_(
                    FinancialTransaction.user_id == user_id,
                    FinancialTransaction.status == "completed",
                )
            )
            .group_by(FinancialTransaction.type, FinancialTransaction.category)
            .order_by(FinancialTransaction.type, FinancialTransaction.category)
        )
        return [
            {"type": row[0], "category": row[1], "total": Decimal(str(row[2])), "count": row[3]}
            for row in result.all()
        ]

# models.py
# SQLAlchemy models for users, wallets, the financial ledger and messaging.

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer,
    JSON, Numeric, String, Text, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


# Money columns: two decimal places, never floats
Money = Numeric(14, 2)

CONNECTED_ACCOUNT_TYPES = ("mpesa", "bank", "paypal", "card")

# STATES: pending, completed, cancelled, failed
TRANSACTION_STATUSES = ("pending", "completed", "cancelled", "failed")
TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_CATEGORIES = (
    "wallet_deposit",
    "wallet_withdrawal",
    "wallet_transfer",
    "mpesa_payment",
    "paypal_payment",
    "sales",
)
WALLET_CATEGORIES = TRANSACTION_CATEGORIES[:5]

CONVERSATION_STATUSES = ("active", "archived", "blocked")
CONVERSATION_PRIORITIES = ("low", "normal", "high", "urgent")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="business_owner", nullable=False)
    currency = Column(String, nullable=True)
    # Customers belong to the business owner that invited them
    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    wallet = relationship("Wallet", uselist=False, back_populates="owner")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        Index("ix_wallets_active_frozen", "is_active", "is_frozen"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    balance = Column(Money, default=0, nullable=False)
    currency = Column(String(3), default="KES", nullable=False)

    # Spending policy
    daily_limit = Column(Money, nullable=False)
    per_transaction_limit = Column(Money, nullable=False)
    today_spent = Column(Money, default=0, nullable=False)
    last_reset_date = Column(Date, nullable=True)

    # Security: only ever holds a one-way hash
    hashed_pin = Column(String, nullable=True)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    is_frozen = Column(Boolean, default=False, nullable=False)
    frozen_reason = Column(String, nullable=True)
    frozen_at = Column(DateTime(timezone=True), nullable=True)

    # Running totals
    total_deposits = Column(Money, default=0, nullable=False)
    total_withdrawals = Column(Money, default=0, nullable=False)
    total_transactions = Column(Integer, default=0, nullable=False)
    last_transaction_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="wallet")
    connected_accounts = relationship(
        "ConnectedAccount",
        back_populates="wallet",
        order_by="ConnectedAccount.id",
        cascade="all, delete-orphan",
    )

    @property
    def has_pin(self) -> bool:
        return bool(self.hashed_pin)

    @property
    def available_today(self):
        remaining = self.daily_limit - self.today_spent
        return remaining if remaining > 0 else 0

    def __repr__(self):
        return f"<Wallet user={self.user_id} {self.currency} {self.balance}>"


class ConnectedAccount(Base):
    __tablename__ = "wallet_connected_accounts"
    __table_args__ = (
        UniqueConstraint("wallet_id", "account_type", "account_number", name="uq_connected_account"),
    )

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    account_type = Column(String, nullable=False)  # mpesa, bank, paypal, card
    account_name = Column(String, nullable=True)
    account_number = Column(String, nullable=False)
    provider = Column(String, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    added_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    wallet = relationship("Wallet", back_populates="connected_accounts")


class FinancialTransaction(Base):
    """
    One audit record per financial movement.

    Wallet credits produce an income entry, debits an expense entry and a
    transfer one entry per party. Entries are immutable apart from status.
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        Index("ix_financial_transactions_user_date", "user_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    description = Column(String, nullable=True)
    amount = Column(Money, nullable=False)
    type = Column(String, nullable=False)  # income, expense
    category = Column(String, nullable=True, index=True)
    status = Column(String, default="completed", nullable=False)
    reference = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    def __repr__(self):
        return f"<FinancialTransaction {self.type} {self.amount} user={self.user_id}>"


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("business_owner_id", "customer_id", name="uq_conversation_pair"),
        Index("ix_conversations_status_updated", "status", "updated_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Display snapshots taken at creation; not re-synced on profile changes
    business_owner_name = Column(String, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)

    last_message_content = Column(Text, nullable=True)
    last_message_sender_id = Column(Integer, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    unread_business_owner = Column(Integer, default=0, nullable=False)
    unread_customer = Column(Integer, default=0, nullable=False)

    status = Column(String, default="active", nullable=False)
    priority = Column(String, default="normal", nullable=False)
    tags = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    messages = relationship("Message", back_populates="conversation", order_by="Message.id")

    def side_of(self, user_id: int):
        """Return 'business_owner', 'customer' or None for a user id."""
        if user_id == self.business_owner_id:
            return "business_owner"
        if user_id == self.customer_id:
            return "customer"
        return None

    def counterpart_of(self, user_id: int):
        return self.customer_id if user_id == self.business_owner_id else self.business_owner_id

    def unread_for(self, user_id: int) -> int:
        if self.side_of(user_id) == "business_owner":
            return self.unread_business_owner
        return self.unread_customer


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    sender_kind = Column(String, nullable=False)  # business_owner, customer
    sender_name = Column(String, nullable=False)
    sender_role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    attachments = Column(JSON, default=list, nullable=False)
    # sent, delivered, read, failed; 'delivered' only via a transport ack
    status = Column(String, default="sent", nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")
    read_by = relationship(
        "MessageReadReceipt",
        back_populates="message",
        order_by="MessageReadReceipt.id",
        lazy="selectin",
    )


class MessageReadReceipt(Base):
    __tablename__ = "message_read_receipts"
    __table_args__ = (
        UniqueConstraint("message_id", "reader_id", name="uq_read_receipt"),
    )

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    reader_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    read_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    message = relationship("Message", back_populates="read_by")

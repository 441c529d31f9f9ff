# schemas.py
# Pydantic models for request/response validation and serialization.

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

class Token(BaseModel):
    access_token: str
    token_type: str
    user_id: int
    email: str
    role: str
    full_name: Optional[str] = None

class UserBase(BaseModel):
    email: EmailStr
    full_name: str
    phone: Optional[str] = None

class UserCreate(UserBase):
    password: str = Field(min_length=8)
    role: Literal["business_owner", "customer"] = "business_owner"
    currency: Optional[str] = None
    invited_by_id: Optional[int] = None

class User(UserBase):
    id: int
    role: str
    currency: Optional[str] = None
    invited_by_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# -----------------------
#  WALLET
# -----------------------
class ConnectedAccount(BaseModel):
    id: int
    account_type: str
    account_name: Optional[str] = None
    account_number: str
    provider: Optional[str] = None
    is_default: bool
    verified: bool
    added_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class Wallet(BaseModel):
    id: int
    user_id: int
    balance: float
    currency: str
    daily_limit: float
    per_transaction_limit: float
    today_spent: float
    available_today: float
    has_pin: bool
    two_factor_enabled: bool
    is_active: bool
    is_frozen: bool
    frozen_reason: Optional[str] = None
    total_deposits: float
    total_withdrawals: float
    total_transactions: int
    last_transaction_date: Optional[datetime] = None
    connected_accounts: List[ConnectedAccount] = []

    class Config:
        from_attributes = True

class WalletBalance(BaseModel):
    balance: float
    currency: str
    todaySpent: float
    dailyLimit: float
    availableToday: float

class WalletLimits(BaseModel):
    daily: float
    perTransaction: float
    todaySpent: float
    availableToday: float

class FinancialTransaction(BaseModel):
    id: int
    user_id: int
    description: Optional[str] = None
    amount: float
    type: str
    category: Optional[str] = None
    status: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[datetime] = None

    class Config:
        from_attributes = True

class WalletMovementResponse(BaseModel):
    message: str
    balance: float
    currency: str
    transaction: FinancialTransaction

class TransferResponse(BaseModel):
    message: str
    senderBalance: float
    currency: str
    senderTransaction: FinancialTransaction
    recipientTransaction: FinancialTransaction

class TransactionPage(BaseModel):
    transactions: List[FinancialTransaction]
    total: int
    currentPage: int
    totalPages: int

class CategoryTotal(BaseModel):
    category: Optional[str] = None
    type: str
    total: float
    count: int

class WalletSummary(BaseModel):
    currency: str
    balance: float
    totalIncome: float
    totalExpense: float
    byCategory: List[CategoryTotal]

class DepositRequest(BaseModel):
    amount: Decimal
    source: Optional[str] = None
    reference: Optional[str] = None
    description: Optional[str] = None

class WithdrawRequest(BaseModel):
    amount: Decimal
    destination: Optional[str] = None
    account_number: Optional[str] = None
    pin: Optional[str] = None
    description: Optional[str] = None

class TransferRequest(BaseModel):
    recipient_id: Optional[int] = None
    amount: Decimal
    pin: Optional[str] = None
    description: Optional[str] = None

class SetPinRequest(BaseModel):
    pin: str
    current_pin: Optional[str] = None

class VerifyPinRequest(BaseModel):
    pin: str

class VerifyPinResponse(BaseModel):
    verified: bool

class UpdateLimitsRequest(BaseModel):
    daily_limit: Optional[Decimal] = None
    per_transaction_limit: Optional[Decimal] = None

class ConnectAccountRequest(BaseModel):
    account_type: str
    account_number: str
    account_name: Optional[str] = None
    provider: Optional[str] = None

class FreezeWalletRequest(BaseModel):
    reason: Optional[str] = None

class TransactionStatusRequest(BaseModel):
    status: Literal["completed", "failed", "cancelled"]


# -----------------------
#  MESSAGING
# -----------------------
class Attachment(BaseModel):
    url: str
    type: Optional[str] = None
    name: Optional[str] = None
    size: Optional[int] = None

class ConversationCreate(BaseModel):
    # Business owners pass customer_id; customers may pass business_owner_id
    customer_id: Optional[int] = None
    business_owner_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None

class ConversationCreated(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    isNew: bool

class ConversationSummary(BaseModel):
    id: int
    counterpartId: int
    counterpartName: str
    email: Optional[str] = None
    phone: Optional[str] = None
    lastMessage: str
    lastMessageTime: Optional[datetime] = None
    unreadCount: int
    status: str
    priority: str
    tags: List[str] = []

class CustomerSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    joinedDate: Optional[datetime] = None
    hasConversation: bool
    conversationId: Optional[int] = None
    unreadCount: int = 0

class ConversationUpdate(BaseModel):
    status: Optional[Literal["active", "archived", "blocked"]] = None
    priority: Optional[Literal["low", "normal", "high", "urgent"]] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

class SendMessageRequest(BaseModel):
    conversation_id: int
    content: str
    attachments: List[Attachment] = []

class ReadReceipt(BaseModel):
    reader_id: int
    read_at: datetime

    class Config:
        from_attributes = True

class Message(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    sender_kind: str
    sender_name: str
    sender_role: str
    content: str
    attachments: List[Attachment] = []
    status: str
    read_by: List[ReadReceipt] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MarkReadResponse(BaseModel):
    success: bool = True
    marked: int = 0

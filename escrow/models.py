from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    OPERATOR = "operator"


class OrderStatus(str, Enum):
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class Decision(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionMethod(str, Enum):
    ORDER_PAYMENT = "order_payment"
    WITHDRAWAL = "withdrawal"
    REFUND = "refund"
    BONUS = "bonus"
    FEE = "fee"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PayoutMethod(str, Enum):
    BKASH = "bkash"
    NAGAD = "nagad"


class Caller(BaseModel):
    """Authenticated identity handed over by the identity provider."""
    user_id: UUID
    role: Role


class CreateOrderRequest(BaseModel):
    listing_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    external_tx_id: Optional[str] = Field(default=None, description="Receipt id issued by the payment provider")
    amount: Optional[Decimal] = Field(default=None, decimal_places=2)
    payment_number: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "listing_id": "3f0c3b2e-8a55-4a53-9d6e-0d3b7bb1c001",
            "payment_method": "bkash",
            "external_tx_id": "TX1",
            "amount": 15000,
            "payment_number": "01712345678"
        }
    })


class SubmitDeliveryRequest(BaseModel):
    artifact_location: Optional[str] = Field(default=None, description="Where the delivered work can be fetched")


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    method: PayoutMethod
    destination_number: str = Field(..., pattern=r"^01[3-9]\d{8}$")


class SettleWithdrawalRequest(BaseModel):
    decision: WithdrawalStatus
    note: Optional[str] = None


class MarkNotificationsRequest(BaseModel):
    notification_id: Optional[UUID] = None
    mark_all: bool = False


class UpdateSettingsRequest(BaseModel):
    withdraw_fee_percentage: Decimal
    min_withdraw_amount: Decimal
    min_fee: Decimal


class Payment(BaseModel):
    id: UUID
    user_id: UUID
    amount: Decimal
    external_tx_id: str
    method: str
    payment_number: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Order(BaseModel):
    id: UUID
    buyer_id: UUID
    seller_id: UUID
    listing_id: UUID
    payment_id: UUID
    amount: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Delivery(BaseModel):
    id: UUID
    order_id: UUID
    artifact_location: str
    status: DeliveryStatus
    decision: Optional[Decision] = None
    created_at: datetime
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Transaction(BaseModel):
    id: UUID
    user_id: UUID
    type: TransactionType
    amount: Decimal
    method: TransactionMethod
    status: TransactionStatus
    description: str
    order_id: Optional[UUID] = None
    payment_id: Optional[UUID] = None
    counterparty_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Withdrawal(BaseModel):
    id: UUID
    user_id: UUID
    transaction_id: UUID
    amount: Decimal
    fee: Decimal
    method: PayoutMethod
    destination_number: str
    currency: str
    status: WithdrawalStatus
    note: str = ""
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserBalance(BaseModel):
    id: UUID
    role: Role
    balance: Decimal
    earnings: Decimal
    pending_orders: int
    completed_orders: int
    last_delivery_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Settings(BaseModel):
    withdraw_fee_percentage: Decimal
    min_withdraw_amount: Decimal
    min_fee: Decimal
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
    id: UUID
    user_id: UUID
    message: str
    href: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    order: Order
    payment: Payment
    transaction: Transaction
    message: str


class WithdrawalResponse(BaseModel):
    withdrawal: Withdrawal
    transaction: Transaction
    total: Decimal
    message: str


class Wallet(BaseModel):
    user_id: UUID
    currency: str
    balance: Decimal
    earnings: Decimal
    pending_balance: Decimal
    total_earned: Decimal
    pending_withdrawals: Decimal
    total_withdrawn: Decimal
    pending_orders: int
    completed_orders: int


class TransactionHistoryResponse(BaseModel):
    user_id: UUID
    transactions: list[Transaction]
    total_count: int
    total_credits: Decimal
    total_debits: Decimal


class NotificationsResponse(BaseModel):
    notifications: list[Notification]
    unread_count: int

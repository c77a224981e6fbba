from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

MONEY = Numeric(18, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    role = Column(String(20), nullable=False)
    balance = Column(MONEY, nullable=False, default=Decimal("0"))
    earnings = Column(MONEY, nullable=False, default=Decimal("0"))
    pending_orders = Column(Integer, nullable=False, default=0)
    completed_orders = Column(Integer, nullable=False, default=0)
    last_delivery_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class ListingRecord(Base):
    __tablename__ = "listings"

    id = Column(Uuid, primary_key=True, default=uuid4)
    seller_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="")
    price = Column(MONEY, nullable=False)


class PaymentRecord(Base):
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("external_tx_id", "method", name="uq_payments_receipt"),
    )

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    amount = Column(MONEY, nullable=False)
    external_tx_id = Column(String(100), nullable=False)
    method = Column(String(50), nullable=False)
    payment_number = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class OrderRecord(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid4)
    buyer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Uuid, ForeignKey("listings.id"), nullable=False)
    payment_id = Column(Uuid, ForeignKey("payments.id"), nullable=False)
    amount = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False, default="paid", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class DeliveryRecord(Base):
    __tablename__ = "deliveries"

    id = Column(Uuid, primary_key=True, default=uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    artifact_location = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    decision = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    decided_at = Column(DateTime(timezone=True), nullable=True)


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    amount = Column(MONEY, nullable=False)
    method = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    description = Column(String(300), nullable=False, default="")
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=True)
    payment_id = Column(Uuid, ForeignKey("payments.id"), nullable=True)
    counterparty_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class WithdrawalRecord(Base):
    __tablename__ = "withdrawals"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=False, unique=True)
    amount = Column(MONEY, nullable=False)
    fee = Column(MONEY, nullable=False, default=Decimal("0"))
    method = Column(String(20), nullable=False)
    destination_number = Column(String(20), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    note = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class SettingsRecord(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, default=1)
    withdraw_fee_percentage = Column(Numeric(5, 2), nullable=False)
    min_withdraw_amount = Column(MONEY, nullable=False)
    min_fee = Column(MONEY, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class NotificationRecord(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(String(300), nullable=False)
    href = Column(String(300), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

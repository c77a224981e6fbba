"""
Withdrawal processing.

Requesting a withdrawal reserves ``amount + fee`` from the seller's balance
right away. The operator later settles it: ``completed`` finalises the payout
with no further balance change, ``rejected`` returns the full reservation.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from .config import config
from .errors import ConflictError, NotFoundError, RoleError, ValidationError
from .models import (
    Caller,
    Role,
    Settings,
    SettleWithdrawalRequest,
    Transaction,
    TransactionMethod,
    TransactionStatus,
    TransactionType,
    UpdateSettingsRequest,
    Withdrawal,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalStatus,
)
from .store import LedgerStore
from .tables import TransactionRecord, UserRecord, WithdrawalRecord, utcnow

logger = logging.getLogger(__name__)


def calculate_fee(amount: Decimal, fee_percentage: Decimal) -> Decimal:
    return (amount * fee_percentage / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class WithdrawalProcessor:
    def __init__(self, store: LedgerStore):
        self.store = store

    def request_withdrawal(self, seller: Caller, request: WithdrawalRequest) -> WithdrawalResponse:
        if seller.role != Role.SELLER:
            raise RoleError("Only sellers can withdraw")

        with self.store.transaction() as session:
            settings = self.store.load_settings(session)
            fee = calculate_fee(request.amount, settings.withdraw_fee_percentage)
            total = request.amount + fee

            if request.amount < settings.min_withdraw_amount:
                raise ValidationError(f"Minimum withdrawal amount is {settings.min_withdraw_amount} {config.CURRENCY}")

            user = session.get(UserRecord, seller.user_id)
            if not user:
                raise NotFoundError(f"User {seller.user_id} not found")

            if not self.store.reserve_funds(session, seller.user_id, total):
                session.refresh(user)
                logger.warning("Withdrawal of %s refused for %s: balance %s", total, seller.user_id, user.balance)
                raise ValidationError(
                    f"Insufficient balance. Required: {total} (amount {request.amount} + fee {fee}), "
                    f"available: {user.balance}"
                )

            transaction = TransactionRecord(
                user_id=seller.user_id,
                type=TransactionType.DEBIT.value,
                amount=total,
                method=TransactionMethod.WITHDRAWAL.value,
                status=TransactionStatus.PENDING.value,
                description=f"Withdrawal of {request.amount} via {request.method.value} (fee {fee})",
            )
            session.add(transaction)
            session.flush()

            withdrawal = WithdrawalRecord(
                user_id=seller.user_id,
                transaction_id=transaction.id,
                amount=request.amount,
                fee=fee,
                method=request.method.value,
                destination_number=request.destination_number,
                currency=config.CURRENCY,
                status=WithdrawalStatus.PENDING.value,
                note="",
            )
            session.add(withdrawal)
            session.flush()

            logger.info("Withdrawal %s requested by %s: %s reserved", withdrawal.id, seller.user_id, total)
            return WithdrawalResponse(
                withdrawal=Withdrawal.model_validate(withdrawal),
                transaction=Transaction.model_validate(transaction),
                total=total,
                message="Withdrawal request submitted",
            )

    def settle_withdrawal(self, operator: Caller, withdrawal_id: UUID, request: SettleWithdrawalRequest) -> Withdrawal:
        if operator.role != Role.OPERATOR:
            raise RoleError("Only operators can settle withdrawals")
        if request.decision not in (WithdrawalStatus.COMPLETED, WithdrawalStatus.REJECTED):
            raise ValidationError("Decision must be completed or rejected")

        with self.store.transaction() as session:
            withdrawal = session.get(WithdrawalRecord, withdrawal_id)
            if not withdrawal:
                raise NotFoundError(f"Withdrawal {withdrawal_id} not found")
            transaction = session.get(TransactionRecord, withdrawal.transaction_id)
            if not transaction:
                raise NotFoundError(f"Transaction {withdrawal.transaction_id} not found")
            if not session.get(UserRecord, withdrawal.user_id):
                raise NotFoundError(f"User {withdrawal.user_id} not found")

            now = utcnow()
            rejected = request.decision == WithdrawalStatus.REJECTED
            settled = self.store.compare_and_set(
                session, WithdrawalRecord, withdrawal.id, {"status": WithdrawalStatus.PENDING.value},
                status=request.decision.value, note=request.note or withdrawal.note, updated_at=now,
            )
            if not settled:
                logger.warning("Withdrawal %s already settled as %s", withdrawal.id, withdrawal.status)
                raise ConflictError(f"Withdrawal {withdrawal.id} is already {withdrawal.status}")

            transaction_status = TransactionStatus.FAILED if rejected else TransactionStatus.COMPLETED
            if not self.store.compare_and_set(
                session, TransactionRecord, transaction.id, {"status": TransactionStatus.PENDING.value},
                status=transaction_status.value, updated_at=now,
            ):
                raise ConflictError(f"Transaction {transaction.id} is already {transaction.status}")

            if rejected:
                self.store.refund_funds(session, withdrawal.user_id, withdrawal.amount + withdrawal.fee)

            session.refresh(withdrawal)
            logger.info("Withdrawal %s settled as %s by %s", withdrawal.id, withdrawal.status, operator.user_id)
            return Withdrawal.model_validate(withdrawal)

    def list_withdrawals(self, operator: Caller, status: Optional[WithdrawalStatus] = None) -> list[Withdrawal]:
        if operator.role != Role.OPERATOR:
            raise RoleError("Only operators can review withdrawals")

        with self.store.transaction() as session:
            stmt = select(WithdrawalRecord).order_by(WithdrawalRecord.created_at.desc())
            if status is not None:
                stmt = stmt.where(WithdrawalRecord.status == status.value)
            return [Withdrawal.model_validate(w) for w in session.execute(stmt).scalars()]

    def update_settings(self, operator: Caller, request: UpdateSettingsRequest) -> Settings:
        if operator.role != Role.OPERATOR:
            raise RoleError("Only operators can change settings")
        for name, value in request.model_dump().items():
            if value < 0:
                raise ValidationError(f"{name} cannot be negative")

        with self.store.transaction() as session:
            settings = self.store.load_settings(session)
            settings.withdraw_fee_percentage = request.withdraw_fee_percentage
            settings.min_withdraw_amount = request.min_withdraw_amount
            settings.min_fee = request.min_fee
            session.flush()
            logger.info("Withdrawal settings updated by %s", operator.user_id)
            return Settings.model_validate(settings)

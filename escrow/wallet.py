from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from .config import config
from .errors import NotFoundError, RoleError, ValidationError
from .models import (
    Caller,
    OrderStatus,
    Role,
    Transaction,
    TransactionHistoryResponse,
    TransactionType,
    Wallet,
    WithdrawalStatus,
)
from .store import LedgerStore
from .tables import OrderRecord, TransactionRecord, UserRecord, WithdrawalRecord


class WalletAggregator:
    """Read-only projections over the ledger. Nothing here writes balances."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def get_wallet(self, seller: Caller) -> Wallet:
        if seller.role != Role.SELLER:
            raise RoleError("Only sellers have a wallet")

        with self.store.transaction() as session:
            user = session.get(UserRecord, seller.user_id)
            if not user:
                raise NotFoundError(f"User {seller.user_id} not found")

            return Wallet(
                user_id=user.id,
                currency=config.CURRENCY,
                balance=user.balance,
                earnings=user.earnings,
                pending_balance=self._sum(session, OrderRecord.amount,
                                          OrderRecord.seller_id == user.id,
                                          OrderRecord.status == OrderStatus.PAID.value),
                total_earned=self._sum(session, OrderRecord.amount,
                                       OrderRecord.seller_id == user.id,
                                       OrderRecord.status == OrderStatus.COMPLETED.value),
                pending_withdrawals=self._sum(session, WithdrawalRecord.amount,
                                              WithdrawalRecord.user_id == user.id,
                                              WithdrawalRecord.status == WithdrawalStatus.PENDING.value),
                total_withdrawn=self._sum(session, WithdrawalRecord.amount,
                                          WithdrawalRecord.user_id == user.id,
                                          WithdrawalRecord.status == WithdrawalStatus.COMPLETED.value),
                pending_orders=user.pending_orders,
                completed_orders=user.completed_orders,
            )

    def get_transaction_history(self, user_id: UUID, limit: int = 50, offset: int = 0) -> TransactionHistoryResponse:
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset must not be negative")

        owned = TransactionRecord.user_id == user_id
        with self.store.transaction() as session:
            stmt = (
                select(TransactionRecord)
                .where(owned)
                .order_by(TransactionRecord.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            page = [Transaction.model_validate(t) for t in session.execute(stmt).scalars()]
            total_count = session.execute(
                select(func.count()).select_from(TransactionRecord).where(owned)
            ).scalar_one()

            return TransactionHistoryResponse(
                user_id=user_id,
                transactions=page,
                total_count=total_count,
                total_credits=self._sum(session, TransactionRecord.amount,
                                        owned, TransactionRecord.type == TransactionType.CREDIT.value),
                total_debits=self._sum(session, TransactionRecord.amount,
                                       owned, TransactionRecord.type == TransactionType.DEBIT.value),
            )

    @staticmethod
    def _sum(session, column, *criteria) -> Decimal:
        total = session.execute(select(func.coalesce(func.sum(column), 0)).where(*criteria)).scalar_one()
        return Decimal(str(total))

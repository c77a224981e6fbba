import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from .errors import AuthorizationError, ConflictError, NotFoundError, RoleError, ValidationError
from .models import (
    Caller,
    CreateOrderRequest,
    Order,
    OrderResponse,
    OrderStatus,
    Payment,
    Role,
    Transaction,
    TransactionMethod,
    TransactionStatus,
    TransactionType,
)
from .store import LedgerStore
from .tables import ListingRecord, OrderRecord, PaymentRecord, TransactionRecord

logger = logging.getLogger(__name__)


class OrderManager:
    """Creates orders and holds the buyer's payment in escrow for the seller."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def create_order(self, buyer: Caller, request: CreateOrderRequest) -> OrderResponse:
        if buyer.role != Role.BUYER:
            raise RoleError("Only buyers can place orders")

        if not all([
            request.listing_id,
            request.payment_method,
            request.external_tx_id,
            request.amount,
            request.payment_number,
        ]):
            raise ValidationError("listing_id, payment_method, external_tx_id, amount and payment_number are required")

        with self.store.transaction() as session:
            if self._payment_exists(session, request.external_tx_id, request.payment_method):
                logger.warning("Duplicate payment receipt %s via %s", request.external_tx_id, request.payment_method)
                raise ConflictError(f"Payment {request.external_tx_id} via {request.payment_method} already exists")

            listing = session.get(ListingRecord, request.listing_id)
            if not listing:
                raise NotFoundError(f"Listing {request.listing_id} not found")
            if listing.price != request.amount:
                raise ValidationError(f"Amount {request.amount} does not match listing price {listing.price}")

            payment = PaymentRecord(
                user_id=buyer.user_id,
                amount=request.amount,
                external_tx_id=request.external_tx_id,
                method=request.payment_method,
                payment_number=request.payment_number,
            )
            session.add(payment)
            try:
                session.flush()
            except IntegrityError:
                # A concurrent request stored the same receipt first
                raise ConflictError(f"Payment {request.external_tx_id} via {request.payment_method} already exists")

            order = OrderRecord(
                buyer_id=buyer.user_id,
                seller_id=listing.seller_id,
                listing_id=listing.id,
                payment_id=payment.id,
                amount=request.amount,
                status=OrderStatus.PAID.value,
            )
            session.add(order)
            session.flush()

            transaction = TransactionRecord(
                user_id=listing.seller_id,
                type=TransactionType.CREDIT.value,
                amount=request.amount,
                method=TransactionMethod.ORDER_PAYMENT.value,
                status=TransactionStatus.PENDING.value,
                description=f"Escrow for order {order.id}",
                order_id=order.id,
                payment_id=payment.id,
                counterparty_id=buyer.user_id,
            )
            session.add(transaction)
            session.flush()

            logger.info("Order %s created: %s held in escrow for seller %s", order.id, order.amount, order.seller_id)
            return OrderResponse(
                order=Order.model_validate(order),
                payment=Payment.model_validate(payment),
                transaction=Transaction.model_validate(transaction),
                message="Order created, payment held in escrow",
            )

    def get_order(self, caller: Caller, order_id: UUID) -> Order:
        with self.store.transaction() as session:
            order = session.get(OrderRecord, order_id)
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if caller.role != Role.OPERATOR and caller.user_id not in (order.buyer_id, order.seller_id):
                raise AuthorizationError("You are not a party to this order")
            return Order.model_validate(order)

    def list_orders(self, caller: Caller) -> list[Order]:
        if caller.role == Role.BUYER:
            owner_column = OrderRecord.buyer_id
        elif caller.role == Role.SELLER:
            owner_column = OrderRecord.seller_id
        else:
            raise RoleError("Only buyers and sellers have orders")

        with self.store.transaction() as session:
            stmt = (
                select(OrderRecord)
                .where(owner_column == caller.user_id)
                .order_by(OrderRecord.created_at.desc())
            )
            return [Order.model_validate(o) for o in session.execute(stmt).scalars()]

    @staticmethod
    def _payment_exists(session, external_tx_id: str, method: str) -> bool:
        stmt = select(PaymentRecord.id).where(
            PaymentRecord.external_tx_id == external_tx_id,
            PaymentRecord.method == method,
        )
        return session.execute(stmt).first() is not None

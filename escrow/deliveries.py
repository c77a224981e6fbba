"""
Delivery decision state machine.

A delivery starts as ``pending`` with no decision. The buyer either accepts
it (``delivered``/``accepted``), which completes the order and releases the
escrowed amount to the seller, or rejects it (``pending``/``rejected``),
which keeps the order open so the seller can submit again. Accepting one
delivery closes every undecided sibling as ``rejected``/``rejected``.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update

from .errors import AuthorizationError, ConflictError, NotFoundError, RoleError, ValidationError
from .models import (
    Caller,
    Decision,
    Delivery,
    DeliveryStatus,
    OrderStatus,
    Role,
    SubmitDeliveryRequest,
    TransactionMethod,
    TransactionStatus,
)
from .notifications import NotificationInbox
from .store import LedgerStore
from .tables import DeliveryRecord, OrderRecord, TransactionRecord, utcnow

logger = logging.getLogger(__name__)


class DeliveryStateMachine:
    def __init__(self, store: LedgerStore):
        self.store = store

    def submit_delivery(self, seller: Caller, order_id: UUID, request: SubmitDeliveryRequest) -> Delivery:
        if seller.role != Role.SELLER:
            raise RoleError("Only sellers can submit deliveries")
        if not request.artifact_location:
            raise ValidationError("artifact_location is required")

        with self.store.transaction() as session:
            order = session.get(OrderRecord, order_id)
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if order.seller_id != seller.user_id:
                raise AuthorizationError("You can only deliver your own orders")

            delivery = DeliveryRecord(
                order_id=order.id,
                artifact_location=request.artifact_location,
                status=DeliveryStatus.PENDING.value,
                decision=None,
            )
            session.add(delivery)

            href = f"/orders/deliveries/{order.id}"
            NotificationInbox.notify(session, order.seller_id, f"New delivery created for order {order.id}", href)
            NotificationInbox.notify(session, order.buyer_id, f"New delivery received for order {order.id}", href)
            session.flush()

            logger.info("Delivery %s submitted for order %s by %s", delivery.id, order.id, seller.user_id)
            return Delivery.model_validate(delivery)

    def accept_delivery(self, buyer: Caller, delivery_id: UUID) -> Delivery:
        with self.store.transaction() as session:
            delivery, order = self._load_for_decision(session, buyer, delivery_id, "accept")
            if order.status == OrderStatus.COMPLETED.value:
                raise ConflictError(f"Order {order.id} is already completed")

            now = utcnow()
            accepted = self.store.compare_and_set(
                session, DeliveryRecord, delivery.id, {"decision": None},
                status=DeliveryStatus.DELIVERED.value, decision=Decision.ACCEPTED.value, decided_at=now,
            )
            if not accepted:
                raise ConflictError(f"Delivery {delivery.id} already has a decision")

            completed = self.store.compare_and_set(
                session, OrderRecord, order.id, {"status": OrderStatus.PAID.value},
                status=OrderStatus.COMPLETED.value, updated_at=now,
            )
            if not completed:
                logger.warning("Refused second release for order %s", order.id)
                raise ConflictError(f"Order {order.id} is no longer awaiting delivery")

            session.execute(
                update(DeliveryRecord)
                .where(
                    DeliveryRecord.order_id == order.id,
                    DeliveryRecord.id != delivery.id,
                    DeliveryRecord.decision.is_(None),
                )
                .values(status=DeliveryStatus.REJECTED.value, decision=Decision.REJECTED.value, decided_at=now)
                .execution_options(synchronize_session=False)
            )

            session.execute(
                update(TransactionRecord)
                .where(
                    TransactionRecord.order_id == order.id,
                    TransactionRecord.method == TransactionMethod.ORDER_PAYMENT.value,
                    TransactionRecord.status == TransactionStatus.PENDING.value,
                )
                .values(status=TransactionStatus.COMPLETED.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )

            if not self.store.credit_seller(session, order.seller_id, order.amount):
                raise NotFoundError(f"Seller {order.seller_id} not found")

            session.refresh(delivery)
            logger.info("Delivery %s accepted: released %s to seller %s", delivery.id, order.amount, order.seller_id)
            return Delivery.model_validate(delivery)

    def reject_delivery(self, buyer: Caller, delivery_id: UUID) -> Delivery:
        with self.store.transaction() as session:
            delivery, order = self._load_for_decision(session, buyer, delivery_id, "reject")

            # Status stays pending: the order remains open for a new submission
            rejected = self.store.compare_and_set(
                session, DeliveryRecord, delivery.id, {"decision": None},
                status=DeliveryStatus.PENDING.value, decision=Decision.REJECTED.value, decided_at=utcnow(),
            )
            if not rejected:
                raise ConflictError(f"Delivery {delivery.id} already has a decision")

            session.refresh(delivery)
            logger.info("Delivery %s rejected, order %s stays in escrow", delivery.id, order.id)
            return Delivery.model_validate(delivery)

    def get_delivery(self, caller: Caller, delivery_id: UUID) -> Delivery:
        with self.store.transaction() as session:
            delivery = session.get(DeliveryRecord, delivery_id)
            if not delivery:
                raise NotFoundError(f"Delivery {delivery_id} not found")
            self._check_party(caller, session.get(OrderRecord, delivery.order_id))
            return Delivery.model_validate(delivery)

    def list_deliveries(self, caller: Caller, order_id: UUID) -> list[Delivery]:
        with self.store.transaction() as session:
            order = session.get(OrderRecord, order_id)
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            self._check_party(caller, order)
            stmt = (
                select(DeliveryRecord)
                .where(DeliveryRecord.order_id == order_id)
                .order_by(DeliveryRecord.created_at.desc())
            )
            return [Delivery.model_validate(d) for d in session.execute(stmt).scalars()]

    @staticmethod
    def _load_for_decision(session, buyer: Caller, delivery_id: UUID, action: str):
        if buyer.role != Role.BUYER:
            raise AuthorizationError(f"Only buyers can {action} deliveries")

        delivery = session.get(DeliveryRecord, delivery_id)
        if not delivery:
            raise NotFoundError(f"Delivery {delivery_id} not found")

        order = session.get(OrderRecord, delivery.order_id)
        if not order:
            raise NotFoundError(f"Order {delivery.order_id} not found")
        if order.buyer_id != buyer.user_id:
            raise AuthorizationError(f"You can only {action} deliveries of your own orders")

        if delivery.decision is not None:
            raise ConflictError(f"Delivery {delivery_id} already has a decision")

        return delivery, order

    @staticmethod
    def _check_party(caller: Caller, order: OrderRecord):
        if caller.role != Role.OPERATOR and caller.user_id not in (order.buyer_id, order.seller_id):
            raise AuthorizationError("You are not a party to this order")

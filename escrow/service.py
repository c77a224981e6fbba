from typing import Optional
from uuid import UUID

from .deliveries import DeliveryStateMachine
from .models import (
    Caller,
    CreateOrderRequest,
    Delivery,
    MarkNotificationsRequest,
    NotificationsResponse,
    Order,
    OrderResponse,
    Settings,
    SettleWithdrawalRequest,
    SubmitDeliveryRequest,
    TransactionHistoryResponse,
    UpdateSettingsRequest,
    Wallet,
    Withdrawal,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalStatus,
)
from .notifications import NotificationInbox
from .orders import OrderManager
from .store import LedgerStore
from .wallet import WalletAggregator
from .withdrawals import WithdrawalProcessor


class EscrowService:
    def __init__(self, store: Optional[LedgerStore] = None):
        if store is None:
            store = LedgerStore()
            store.create_all()
        self.store = store
        self.orders = OrderManager(store)
        self.deliveries = DeliveryStateMachine(store)
        self.withdrawals = WithdrawalProcessor(store)
        self.wallet = WalletAggregator(store)
        self.notifications = NotificationInbox(store)

    def create_order(self, buyer: Caller, request: CreateOrderRequest) -> OrderResponse:
        return self.orders.create_order(buyer, request)

    def get_order(self, caller: Caller, order_id: UUID) -> Order:
        return self.orders.get_order(caller, order_id)

    def list_orders(self, caller: Caller) -> list[Order]:
        return self.orders.list_orders(caller)

    def submit_delivery(self, seller: Caller, order_id: UUID, request: SubmitDeliveryRequest) -> Delivery:
        return self.deliveries.submit_delivery(seller, order_id, request)

    def accept_delivery(self, buyer: Caller, delivery_id: UUID) -> Delivery:
        return self.deliveries.accept_delivery(buyer, delivery_id)

    def reject_delivery(self, buyer: Caller, delivery_id: UUID) -> Delivery:
        return self.deliveries.reject_delivery(buyer, delivery_id)

    def get_delivery(self, caller: Caller, delivery_id: UUID) -> Delivery:
        return self.deliveries.get_delivery(caller, delivery_id)

    def list_deliveries(self, caller: Caller, order_id: UUID) -> list[Delivery]:
        return self.deliveries.list_deliveries(caller, order_id)

    def request_withdrawal(self, seller: Caller, request: WithdrawalRequest) -> WithdrawalResponse:
        return self.withdrawals.request_withdrawal(seller, request)

    def settle_withdrawal(self, operator: Caller, withdrawal_id: UUID, request: SettleWithdrawalRequest) -> Withdrawal:
        return self.withdrawals.settle_withdrawal(operator, withdrawal_id, request)

    def list_withdrawals(self, operator: Caller, status: Optional[WithdrawalStatus] = None) -> list[Withdrawal]:
        return self.withdrawals.list_withdrawals(operator, status)

    def get_settings(self) -> Settings:
        return self.store.get_settings()

    def update_settings(self, operator: Caller, request: UpdateSettingsRequest) -> Settings:
        return self.withdrawals.update_settings(operator, request)

    def get_wallet(self, seller: Caller) -> Wallet:
        return self.wallet.get_wallet(seller)

    def get_transaction_history(self, user_id: UUID, limit: int = 50, offset: int = 0) -> TransactionHistoryResponse:
        return self.wallet.get_transaction_history(user_id, limit, offset)

    def list_notifications(self, caller: Caller) -> NotificationsResponse:
        return self.notifications.list_notifications(caller)

    def mark_notifications_read(self, caller: Caller, request: MarkNotificationsRequest) -> int:
        return self.notifications.mark_read(caller, request)

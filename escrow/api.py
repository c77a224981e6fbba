import logging
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import config
from .errors import (
    AuthorizationError, ConflictError, EscrowError, NotFoundError, StorageError, ValidationError,
)
from .models import (
    Caller, CreateOrderRequest, Delivery, MarkNotificationsRequest, NotificationsResponse, Order,
    OrderResponse, Role, Settings,
    SettleWithdrawalRequest, SubmitDeliveryRequest, TransactionHistoryResponse,
    UpdateSettingsRequest, Wallet, Withdrawal, WithdrawalRequest, WithdrawalResponse,
    WithdrawalStatus,
)
from .service import EscrowService

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

app = FastAPI(
    title="Escrow Ledger API",
    description="Escrow, delivery settlement and withdrawal ledger for a freelance marketplace",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache
def get_service() -> EscrowService:
    return EscrowService()


def get_caller(x_user_id: UUID = Header(...), x_user_role: Role = Header(...)) -> Caller:
    return Caller(user_id=x_user_id, role=x_user_role)


@app.exception_handler(EscrowError)
def handle_escrow_error(request: Request, exc: EscrowError) -> JSONResponse:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "escrow-ledger"}


@app.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED, tags=["Orders"])
def create_order(
    request: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> OrderResponse:
    return service.create_order(caller, request)


@app.get("/orders", response_model=list[Order], tags=["Orders"])
def list_orders(caller: Caller = Depends(get_caller), service: EscrowService = Depends(get_service)) -> list[Order]:
    return service.list_orders(caller)


@app.get("/orders/{order_id}", response_model=Order, tags=["Orders"])
def get_order(
    order_id: UUID,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Order:
    return service.get_order(caller, order_id)


@app.get("/orders/{order_id}/deliveries", response_model=list[Delivery], tags=["Deliveries"])
def list_deliveries(
    order_id: UUID,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> list[Delivery]:
    return service.list_deliveries(caller, order_id)


@app.post("/orders/{order_id}/deliveries", response_model=Delivery, status_code=status.HTTP_201_CREATED,
          tags=["Deliveries"])
def submit_delivery(
    order_id: UUID,
    request: SubmitDeliveryRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Delivery:
    return service.submit_delivery(caller, order_id, request)


@app.get("/deliveries/{delivery_id}", response_model=Delivery, tags=["Deliveries"])
def get_delivery(
    delivery_id: UUID,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Delivery:
    return service.get_delivery(caller, delivery_id)


@app.post("/deliveries/{delivery_id}/accept", response_model=Delivery, tags=["Deliveries"])
def accept_delivery(
    delivery_id: UUID,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Delivery:
    return service.accept_delivery(caller, delivery_id)


@app.post("/deliveries/{delivery_id}/reject", response_model=Delivery, tags=["Deliveries"])
def reject_delivery(
    delivery_id: UUID,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Delivery:
    return service.reject_delivery(caller, delivery_id)


@app.get("/wallet", response_model=Wallet, tags=["Wallet"])
def get_wallet(caller: Caller = Depends(get_caller), service: EscrowService = Depends(get_service)) -> Wallet:
    return service.get_wallet(caller)


@app.get("/transactions", response_model=TransactionHistoryResponse, tags=["Wallet"])
def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> TransactionHistoryResponse:
    return service.get_transaction_history(caller.user_id, limit, offset)


@app.post("/withdrawals", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED,
          tags=["Withdrawals"])
def request_withdrawal(
    request: WithdrawalRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> WithdrawalResponse:
    return service.request_withdrawal(caller, request)


@app.get("/withdrawals", response_model=list[Withdrawal], tags=["Withdrawals"])
def list_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> list[Withdrawal]:
    return service.list_withdrawals(caller, status)


@app.post("/withdrawals/{withdrawal_id}/settle", response_model=Withdrawal, tags=["Withdrawals"])
def settle_withdrawal(
    withdrawal_id: UUID,
    request: SettleWithdrawalRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Withdrawal:
    return service.settle_withdrawal(caller, withdrawal_id, request)


@app.get("/settings", response_model=Settings, tags=["Settings"])
def get_settings(service: EscrowService = Depends(get_service)) -> Settings:
    return service.get_settings()


@app.put("/settings", response_model=Settings, tags=["Settings"])
def update_settings(
    request: UpdateSettingsRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> Settings:
    return service.update_settings(caller, request)


@app.get("/notifications", response_model=NotificationsResponse, tags=["Notifications"])
def list_notifications(
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
) -> NotificationsResponse:
    return service.list_notifications(caller)


@app.patch("/notifications", tags=["Notifications"])
def mark_notifications_read(
    request: MarkNotificationsRequest,
    caller: Caller = Depends(get_caller),
    service: EscrowService = Depends(get_service),
):
    return {"success": True, "updated": service.mark_notifications_read(caller, request)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

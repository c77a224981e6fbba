"""
Escrow and Withdrawal Ledger for a Freelance Marketplace

This module provides:
- Order creation with the buyer's payment held in escrow
- Delivery accept/reject decisions with at-most-once release of funds
- Seller withdrawals reserved up front and settled by an operator
- Read-only wallet projections
- Per-user notifications when work is delivered
- Idempotent payment receipts and all-or-nothing ledger writes
"""

from .errors import (
    EscrowError,
    AuthorizationError,
    RoleError,
    ValidationError,
    ConflictError,
    NotFoundError,
    StorageError,
)
from .models import (
    Role,
    Caller,
    OrderStatus,
    DeliveryStatus,
    Decision,
    TransactionStatus,
    WithdrawalStatus,
)
from .service import EscrowService
from .store import LedgerStore

__all__ = [
    "EscrowError",
    "AuthorizationError",
    "RoleError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "StorageError",
    "Role",
    "Caller",
    "OrderStatus",
    "DeliveryStatus",
    "Decision",
    "TransactionStatus",
    "WithdrawalStatus",
    "EscrowService",
    "LedgerStore",
]

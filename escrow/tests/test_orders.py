"""
Unit Tests for order creation and escrow

Tests cover:
1. Successful order creation with a pending escrow credit
2. Duplicate payment receipts
3. Role, field and price validation
4. Order listing per party
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from pydantic import ValidationError as RequestValidationError

from escrow.errors import AuthorizationError, ConflictError, NotFoundError, RoleError, ValidationError
from escrow.models import (
    Caller,
    CreateOrderRequest,
    OrderStatus,
    Role,
    TransactionMethod,
    TransactionStatus,
    TransactionType,
)


class TestCreateOrder:
    """Tests for the create order flow."""

    def test_create_order_holds_payment_in_escrow(self, service, buyer, seller, order_request):
        """Test that the order is paid and the seller only gets a pending claim."""
        response = service.create_order(buyer, order_request)

        # Verify order
        assert response.order.status == OrderStatus.PAID
        assert response.order.amount == Decimal("15000")
        assert response.order.buyer_id == buyer.user_id
        assert response.order.seller_id == seller.user_id
        assert response.order.payment_id == response.payment.id

        # Verify payment receipt
        assert response.payment.external_tx_id == "TX1"
        assert response.payment.method == "bkash"

        # Verify escrow entry
        assert response.transaction.user_id == seller.user_id
        assert response.transaction.type == TransactionType.CREDIT
        assert response.transaction.method == TransactionMethod.ORDER_PAYMENT
        assert response.transaction.status == TransactionStatus.PENDING
        assert response.transaction.order_id == response.order.id

        # No funds reach the seller's balance yet
        wallet = service.get_wallet(seller)
        assert wallet.balance == Decimal("0")
        assert wallet.pending_balance == Decimal("15000")

    def test_duplicate_payment_is_conflict(self, service, buyer, order_request):
        """Test that the same receipt cannot fund two orders."""
        service.create_order(buyer, order_request)

        with pytest.raises(ConflictError):
            service.create_order(buyer, order_request)

        assert len(service.list_orders(buyer)) == 1

    def test_same_receipt_with_other_method_is_accepted(self, service, buyer, order_request):
        """Test that uniqueness is keyed by receipt id and method together."""
        service.create_order(buyer, order_request)

        other = order_request.model_copy(update={"payment_method": "nagad"})
        response = service.create_order(buyer, other)

        assert response.payment.method == "nagad"
        assert len(service.list_orders(buyer)) == 2

    def test_seller_cannot_place_order(self, service, seller, order_request):
        with pytest.raises(RoleError):
            service.create_order(seller, order_request)

    def test_sub_cent_amount_is_rejected(self, listing_id):
        with pytest.raises(RequestValidationError):
            CreateOrderRequest(listing_id=listing_id, amount=Decimal("15000.001"))

    def test_missing_fields_rejected(self, service, buyer, listing_id):
        request = CreateOrderRequest(listing_id=listing_id, payment_method="bkash", amount=Decimal("15000"))

        with pytest.raises(ValidationError):
            service.create_order(buyer, request)

    def test_unknown_listing(self, service, buyer, order_request):
        request = order_request.model_copy(update={"listing_id": uuid4()})

        with pytest.raises(NotFoundError):
            service.create_order(buyer, request)

    def test_amount_must_match_listing_price(self, service, buyer, order_request):
        """Test that a client-supplied price cannot undercut the listing."""
        request = order_request.model_copy(update={"amount": Decimal("100")})

        with pytest.raises(ValidationError):
            service.create_order(buyer, request)

        # Nothing was stored, so the receipt is still usable
        response = service.create_order(buyer, order_request)
        assert response.order.status == OrderStatus.PAID


class TestOrderQueries:
    """Tests for reading orders."""

    def test_parties_see_their_orders(self, service, buyer, seller, order):
        assert [o.id for o in service.list_orders(buyer)] == [order.id]
        assert [o.id for o in service.list_orders(seller)] == [order.id]
        assert service.get_order(buyer, order.id).id == order.id

    def test_outsider_cannot_read_order(self, service, store, order):
        outsider = store.add_user(Role.BUYER)
        with pytest.raises(AuthorizationError):
            service.get_order(Caller(user_id=outsider.id, role=Role.BUYER), order.id)

    def test_operator_has_no_order_list(self, service, operator):
        with pytest.raises(RoleError):
            service.list_orders(operator)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

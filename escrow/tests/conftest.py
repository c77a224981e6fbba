from decimal import Decimal

import pytest

from escrow.models import Caller, CreateOrderRequest, Role, SubmitDeliveryRequest
from escrow.service import EscrowService
from escrow.store import LedgerStore

LISTING_PRICE = Decimal("15000")


@pytest.fixture
def store():
    store = LedgerStore("sqlite://")
    store.create_all()
    yield store
    store.drop_all()
    store.engine.dispose()


@pytest.fixture
def service(store):
    return EscrowService(store)


@pytest.fixture
def buyer(store):
    user = store.add_user(Role.BUYER)
    return Caller(user_id=user.id, role=Role.BUYER)


@pytest.fixture
def seller(store):
    user = store.add_user(Role.SELLER)
    return Caller(user_id=user.id, role=Role.SELLER)


@pytest.fixture
def operator(store):
    user = store.add_user(Role.OPERATOR)
    return Caller(user_id=user.id, role=Role.OPERATOR)


@pytest.fixture
def listing_id(store, seller):
    return store.add_listing(seller.user_id, LISTING_PRICE, title="Logo design")


@pytest.fixture
def order_request(listing_id):
    return CreateOrderRequest(
        listing_id=listing_id,
        payment_method="bkash",
        external_tx_id="TX1",
        amount=LISTING_PRICE,
        payment_number="01712345678",
    )


@pytest.fixture
def order(service, buyer, order_request):
    return service.create_order(buyer, order_request).order


@pytest.fixture
def submit(service, seller):
    def _submit(order_id, name="work.zip"):
        return service.submit_delivery(seller, order_id, SubmitDeliveryRequest(artifact_location=f"/uploads/{name}"))
    return _submit

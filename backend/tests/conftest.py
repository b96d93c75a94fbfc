from decimal import Decimal

import pytest
import pytest_asyncio

from storefront.bootstrap import initialize_app
from storefront.config import Settings
from storefront.mocks.settlement_gateway import MockSettlementGateway
from storefront.models.orders import CreateOrderInput, CreateUserInput, OrderItem
from storefront.models.payments import CreatePaymentInput


@pytest.fixture
def database_url(tmp_path):
    # File-backed so concurrent sessions each get their own connection
    return f"sqlite+aiosqlite:///{tmp_path / 'storefront_test.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(
        database_url=database_url,
        demo_mode=True,
        log_level="DEBUG",
        refund_batch_concurrency=2,
    )


@pytest.fixture
def gateway():
    return MockSettlementGateway()


@pytest_asyncio.fixture
async def services(settings, gateway):
    app_services = await initialize_app(settings, gateway)
    yield app_services
    await app_services.close()


@pytest.fixture
def db(services):
    return services.db


@pytest.fixture
def payment_service(services):
    return services.payment_service


@pytest.fixture
def order_service(services):
    return services.order_service


@pytest.fixture
def user_service(services):
    return services.user_service


@pytest_asyncio.fixture
async def user(user_service):
    return await user_service.create_user(CreateUserInput(email="ada@example.com", name="Ada"))


@pytest_asyncio.fixture
async def order(order_service, user):
    return await order_service.create_order(CreateOrderInput(
        user_id=user.id,
        items=[
            OrderItem(product_id="mug", name="Mug", price=Decimal("12.50"), quantity=2),
            OrderItem(product_id="tea", name="Tea", price=Decimal("75.00"), quantity=1),
        ],
        shipping_address="1 Analytical Way",
    ))


@pytest.fixture
def make_payment():
    def _make(order_id="o1", amount="100", method="credit_card", card_token="tok_1", currency="USD"):
        return CreatePaymentInput(
            order_id=order_id,
            amount=Decimal(amount),
            currency=currency,
            method=method,
            card_token=card_token,
        )
    return _make

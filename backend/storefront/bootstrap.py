"""
Application wiring.

Builds the engine, data store, audit logger and services, passing each
collaborator explicitly through constructors.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings, settings as default_settings
from .db import DatabaseClient, create_engine, create_session_factory, initialize_database
from .mocks.settlement_gateway import MockSettlementGateway
from .services.order_service import OrderService
from .services.payment_service import PaymentService
from .services.user_service import UserService
from .utils.logger import AuditLogger


@dataclass
class AppServices:
    settings: Settings
    engine: AsyncEngine
    db: DatabaseClient
    logger: AuditLogger
    gateway: MockSettlementGateway
    user_service: UserService
    order_service: OrderService
    payment_service: PaymentService

    async def close(self) -> None:
        await self.engine.dispose()


async def initialize_app(
    app_settings: Optional[Settings] = None,
    gateway: Optional[MockSettlementGateway] = None
) -> AppServices:
    """
    Initialize the application with all services.

    Args:
        app_settings: Settings override; defaults to the environment
        gateway: Settlement gateway override; defaults to the mock with
            declines simulated outside demo mode
    """
    app_settings = app_settings or default_settings

    engine = create_engine(app_settings.database_url)
    await initialize_database(engine)

    db = DatabaseClient(create_session_factory(engine))
    logger = AuditLogger("storefront")
    logger.info("Database connected", url=engine.url.render_as_string(hide_password=True))

    gateway = gateway or MockSettlementGateway(simulate_declines=not app_settings.demo_mode)

    user_service = UserService(db, logger.child("users"))
    order_service = OrderService(db, logger.child("orders"), user_service)
    payment_service = PaymentService(
        db,
        logger.child("payments"),
        gateway,
        refund_concurrency=app_settings.refund_batch_concurrency
    )

    return AppServices(
        settings=app_settings,
        engine=engine,
        db=db,
        logger=logger,
        gateway=gateway,
        user_service=user_service,
        order_service=order_service,
        payment_service=payment_service,
    )

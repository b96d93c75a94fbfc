"""
Storefront Backend - FastAPI Application

E-commerce backend: users, orders and the payment transaction lifecycle.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .bootstrap import initialize_app
from .config import Settings, settings as default_settings
from .exceptions import StorefrontError
from .mocks.settlement_gateway import MockSettlementGateway
from .utils.logger import configure_logging
from .api.users import router as users_router
from .api.orders import router as orders_router
from .api.payments import router as payments_router

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    gateway: Optional[MockSettlementGateway] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings override (tests point this at an in-memory database)
        gateway: Settlement gateway override
    """
    app_settings = app_settings or default_settings
    configure_logging(app_settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        - Startup: Initialize database and services
        - Shutdown: Dispose of the engine
        """
        logger.info("Starting Storefront backend server...")
        logger.info(f"Demo mode: {app_settings.demo_mode}")

        try:
            app.state.services = await initialize_app(app_settings, gateway)
            logger.info("Services initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}")
            raise

        logger.info("Server startup complete")

        yield

        logger.info("Shutting down Storefront backend server...")
        await app.state.services.close()

    app = FastAPI(
        title=app_settings.app_name,
        description="Users, orders and payment transaction lifecycle",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        """
        Handle domain errors with the standard error response format.

        Status code comes from the exception class (400 validation,
        402 declined, 404 not found, 409 conflict).
        """
        logger.warning(
            f"Storefront error: {exc.error_code} - {exc.message}",
            extra={"details": exc.details}
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """
        Handle validation errors with user-friendly messages.

        Used for input validation failures not caught by Pydantic.
        """
        logger.warning(f"Validation error: {str(exc)}")

        return JSONResponse(
            status_code=400,
            content={
                "error_code": "validation_error",
                "message": str(exc),
                "details": {}
            },
        )

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unexpected errors.

        Logs full exception for debugging but returns generic message to client.
        """
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

        return JSONResponse(
            status_code=500,
            content={
                "error_code": "internal_error",
                "message": "An unexpected error occurred",
                "details": {"error_type": type(exc).__name__} if app_settings.demo_mode else {}
            },
        )

    @app.get("/api/health")
    async def health_check(request: Request):
        """
        Health check endpoint for monitoring and load balancers.

        Returns:
            Server status, version and settlement gateway status
        """
        return {
            "status": "healthy",
            "version": "0.1.0",
            "demo_mode": app_settings.demo_mode,
            "settlement": request.app.state.services.gateway.get_status(),
        }

    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(orders_router, prefix="/api/orders", tags=["Orders"])
    app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])

    return app


app = create_app()


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn
    uvicorn.run(
        "storefront.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.demo_mode,
        log_level=default_settings.log_level.lower()
    )


if __name__ == "__main__":
    run()

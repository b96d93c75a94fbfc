"""
Storefront Configuration Module

Loads environment variables for backend configuration.
"""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Demo mode approves every charge that is not an explicit decline token
    - Refund batches never fan out beyond refund_batch_concurrency
    """

    app_name: str = "Storefront API"

    # Demo Configuration
    demo_mode: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./storefront.db"

    # Payments
    enforce_order_total: bool = False  # Reject payments whose amount differs from the order total
    refund_batch_concurrency: int = 5

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()

"""Application configuration."""
from decimal import Decimal
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str

    # Store
    store_name: str = "Ekomart"

    # Backend API used by the checkout gateway
    api_base_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 10.0

    # Admin dashboard
    dashboard_password: str = "change-me"
    session_ttl_hours: int = 24

    # Pricing
    tax_rate: Decimal = Decimal("0.08")
    discount_policy: Literal["clamp", "reject"] = "clamp"

    # Admin manual orders: flat fee, free above the threshold
    admin_shipping_fee: Decimal = Decimal("10")
    admin_free_shipping_threshold: Decimal = Decimal("50")
    admin_currency: str = "USD"

    # Customer checkout: fixed fee per delivery zone
    inside_region_fee: Decimal = Decimal("60")
    outside_region_fee: Decimal = Decimal("120")
    checkout_currency: str = "BDT"

    # Guest cart persistence
    guest_cart_key: str = "ekomart-cart"
    guest_cart_dir: Optional[str] = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()

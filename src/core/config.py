"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Signing key JWK (JSON string) for JWT token verification")
    jwt_audience: str = Field(default="authenticated", description="Expected aud claim of access tokens")

    # Tables
    products_table: str = Field(default="products", description="Catalog products table")
    variants_table: str = Field(default="variants", description="Catalog variants table")
    orders_table: str = Field(default="orders", description="Orders table keyed by (user_id, created_at)")

    # Razorpay
    razorpay_key_id: str = Field(default="", description="Razorpay key id (also handed to the frontend)")
    razorpay_key_secret: str = Field(default="", description="Razorpay key secret, used for API auth and HMAC")
    razorpay_api_base_url: str = Field(default="https://api.razorpay.com/v1", description="Razorpay REST API base URL")
    razorpay_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for Razorpay API calls")
    razorpay_verify_amount_on_confirm: bool = Field(
        default=True,
        description="Fetch the Razorpay order on confirmation and compare amount/currency with the stored order",
    )

    # Checkout
    currency: str = Field(default="INR", description="ISO currency code used for every order")
    guest_id_prefix: str = Field(default="guest_", description="Prefix carried by every guest principal id")
    admin_role: str = Field(default="admin", description="JWT role claim value granting admin access")
    order_key_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts at inserting an order when (user_id, created_at) collides",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_razorpay_configured(self) -> bool:
        """Check if both Razorpay credentials are present."""
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def is_razorpay_test_mode(self) -> bool:
        """Check if using Razorpay test keys."""
        return self.razorpay_key_id.startswith("rzp_test_")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()

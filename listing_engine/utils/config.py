"""Engine configuration read from environment variables."""

import os


class EngineConfig:
    """Pricing, payment and expiration settings."""

    UNIVERSAL_FREE_CODE = os.environ.get("UNIVERSAL_FREE_CODE", "FREE100").strip().upper()
    DEFAULT_REDIRECT_URL = os.environ.get(
        "DEFAULT_REDIRECT_URL", "http://localhost:5000/for-sale/payment-complete"
    )
    PAYMENT_VERIFY_TIMEOUT_SECONDS = float(os.environ.get("PAYMENT_VERIFY_TIMEOUT_SECONDS", "10"))
    EXPIRING_SOON_DAYS = int(os.environ.get("EXPIRING_SOON_DAYS", "7"))
    EXPIRED_GRACE_DAYS = int(os.environ.get("EXPIRED_GRACE_DAYS", "30"))
    SWEEP_INTERVAL_SECONDS = int(os.environ.get("SWEEP_INTERVAL_SECONDS", "3600"))
    RECONCILIATION_BATCH_SIZE = int(os.environ.get("RECONCILIATION_BATCH_SIZE", "50"))


class SquareConfig:
    """Square API credentials and endpoint selection."""

    SQUARE_ENVIRONMENT = os.environ.get("SQUARE_ENVIRONMENT", "sandbox").lower()
    SQUARE_ACCESS_TOKEN = os.environ.get("SQUARE_ACCESS_TOKEN", "").strip()
    SQUARE_LOCATION_ID = os.environ.get("SQUARE_LOCATION_ID", "").strip()
    SQUARE_API_VERSION = os.environ.get("SQUARE_API_VERSION", "2024-12-18")
    SQUARE_HTTP_TIMEOUT_SECONDS = float(os.environ.get("SQUARE_HTTP_TIMEOUT_SECONDS", "15"))

    @classmethod
    def api_url(cls) -> str:
        """Base URL for the configured Square environment."""
        if cls.SQUARE_ENVIRONMENT == "production":
            return "https://connect.squareup.com/v2"
        return "https://connect.squareupsandbox.com/v2"


class SupabaseConfig:
    """Supabase project holding the listings, payments and discount tables."""

    SUPABASE_URL = os.environ.get("SUPABASE_URL", "").strip()
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "").strip()
    SUPABASE_SCHEMA = os.environ.get("SUPABASE_SCHEMA", "public")
    SUPABASE_TIMEOUT_SECONDS = int(os.environ.get("SUPABASE_TIMEOUT_SECONDS", "10"))

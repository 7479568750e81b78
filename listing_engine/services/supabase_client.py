"""Shared Supabase client for the listing, payment and discount tables."""

from typing import Optional

from supabase import create_client, Client
from supabase.client import ClientOptions

from listing_engine.utils.config import SupabaseConfig
from listing_engine.utils.errors import SupabaseError
from listing_engine.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

# One client per process; serverless invocations reuse it while warm
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Return the process-wide service-role client, creating it on first use."""
    global _client

    if _client is None:
        url = SupabaseConfig.SUPABASE_URL
        key = SupabaseConfig.SUPABASE_SERVICE_ROLE_KEY
        if not url or not key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            schema=SupabaseConfig.SUPABASE_SCHEMA,
            auto_refresh_token=False,
            persist_session=False,
            postgrest_client_timeout=SupabaseConfig.SUPABASE_TIMEOUT_SECONDS,
        )
        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", supabase_url=url, schema=SupabaseConfig.SUPABASE_SCHEMA)

    return _client


def reset_supabase_client() -> None:
    """Forget the cached client so the next call reconnects."""
    global _client
    _client = None


class SupabaseClient:
    """
    Async context manager handing out the shared client.

    Failures raised inside the block are logged with the table operation
    name and re-raised unchanged.
    """

    def __init__(self, operation: Optional[str] = None):
        self.operation = operation
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation failed",
                operation=self.operation,
                error=str(exc_val),
                error_type=exc_type.__name__
            )
        return False

import logging
import os
from typing import Optional

from django.conf import settings
from supabase import Client, SupabaseException, create_client

from ..exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

_client: Client | None = None


def _credentials() -> tuple[str | None, str | None]:
    url = getattr(settings, "SUPABASE_URL", "") or os.getenv("SUPABASE_URL")
    key = getattr(settings, "SUPABASE_KEY", "") or os.getenv("SUPABASE_KEY")
    return url, key


def get_supabase_client() -> Optional[Client]:
    """Return a cached Supabase client if available.

    The client is initialised using ``SUPABASE_URL`` and ``SUPABASE_KEY``
    from the Django settings, falling back to the environment. If
    configuration is missing or the connection fails, ``None`` is returned
    and the error is logged. The initialisation is performed once and the
    resulting client is cached for subsequent calls.
    """

    global _client
    if _client is not None:
        return _client

    url, key = _credentials()
    if not url or not key:
        logger.warning("Supabase is not configured")
        return None
    try:  # pragma: no cover - network interaction
        _client = create_client(url, key)
    except SupabaseException:  # pragma: no cover - network interaction
        logger.exception("Failed to initialise Supabase client")
        return None
    return _client


def require_client() -> Client:
    """Return the Supabase client or raise ``StoreUnavailableError``."""
    client = get_supabase_client()
    if client is None:
        raise StoreUnavailableError()
    return client

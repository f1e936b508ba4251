"""
Adapters layer - Store implementations (Supabase REST, in-memory demo) and
credential storage.
"""

import logging
from typing import Optional, Union

from ..config import AppConfig
from .credentials import CredentialStore
from .memory_store import MemoryStore
from .supabase_client import SupabaseStore

logger = logging.getLogger(__name__)

__all__ = ["CredentialStore", "MemoryStore", "SupabaseStore", "create_store"]


def create_store(
    config: AppConfig,
    credentials: Optional[CredentialStore] = None,
) -> Union[SupabaseStore, MemoryStore]:
    """
    Build the store selected by the configuration.

    ``auto`` picks Supabase when both the URL and an API key (config,
    environment or keyring) are available, and the demo store otherwise.

    Raises:
        ValueError: If ``supabase`` is requested without URL or key
    """
    url = config.supabase.url
    api_key = config.supabase.api_key

    if url and not api_key and config.backend != "mock":
        api_key = (credentials or CredentialStore()).get_api_key(url)

    if config.backend == "supabase" or (config.backend == "auto" and url and api_key):
        if not url or not api_key:
            raise ValueError(
                "Supabase backend requires supabase.url and an API key "
                "(config, SUPABASE_ANON_KEY or 'barbershop store-key')."
            )
        logger.debug("Using Supabase store at %s", url)
        return SupabaseStore(url=url, api_key=api_key, timeout=config.supabase.timeout_seconds)

    logger.info("Supabase not configured; using in-memory demo store")
    return MemoryStore(data_file=config.mock.data_file, timezone=config.timezone)

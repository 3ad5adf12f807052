"""
Shared Supabase client for the record store and nurture sink.

Only built when STORE_BACKEND=supabase; the in-memory backend never
touches it.
"""

import logging
from typing import Optional

from supabase import create_client, Client

from .config import Config

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Shared client for the kernel tables (created on first use).

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing
    """
    global _supabase_client

    if _supabase_client is None:
        Config.validate()
        _supabase_client = create_client(Config.SUPABASE_URL, Config.SUPABASE_SERVICE_KEY)
        logger.info(f"Supabase client created for {Config.SUPABASE_URL}")

    return _supabase_client


def reset_supabase_client() -> None:
    """Drop the shared client; the next get_supabase_client() builds a new one."""
    global _supabase_client
    _supabase_client = None

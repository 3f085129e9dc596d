"""
Shared Supabase client for pitch-deck storage.

Credentials come from SUPABASE_URL and SUPABASE_SERVICE_KEY. The client is
built on import when both are set; otherwise `get_supabase()` retries on
first use so secrets mounted after start-up are still picked up.
"""

import logging
import os
from typing import Optional, Tuple

from supabase import Client, create_client

logger = logging.getLogger(__name__)

supabase: Optional[Client] = None


def supabase_credentials() -> Tuple[Optional[str], Optional[str]]:
    return os.getenv("SUPABASE_URL"), os.getenv("SUPABASE_SERVICE_KEY")


def initialize_supabase() -> Optional[Client]:
    """(Re)build the shared client; None when credentials are missing or rejected."""
    global supabase

    url, key = supabase_credentials()
    if not url or not key:
        logger.warning("SUPABASE_URL or SUPABASE_SERVICE_KEY is not set; deck storage is unavailable.")
        return None

    try:
        supabase = create_client(url, key)
    except Exception as e:
        logger.error("Could not create Supabase client for %s: %s", url, e, exc_info=True)
        return None
    logger.info("Supabase client ready for %s", url)
    return supabase


def get_supabase() -> Client:
    client = supabase or initialize_supabase()
    if client is None:
        raise RuntimeError("Supabase client not initialized. Check environment variables.")
    return client


if all(supabase_credentials()):
    initialize_supabase()

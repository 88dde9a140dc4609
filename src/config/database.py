"""
Remote client singletons.

This module provides singleton instances for the Supabase and Redis
connections, ensuring one client per process.
"""

from functools import lru_cache
from typing import Optional

import redis.asyncio as redis
from supabase import AsyncClient, acreate_client

from config.settings import Settings, get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


_supabase_client: Optional[AsyncClient] = None


async def get_supabase_client(settings: Optional[Settings] = None) -> AsyncClient:
    """
    Get the singleton async Supabase client instance.

    Args:
        settings: Settings to build the client from (default: get_settings())

    Returns:
        AsyncClient: The Supabase client instance

    Raises:
        SupabaseClientError: If client cannot be created
    """
    global _supabase_client
    if _supabase_client is not None:
        return _supabase_client

    settings = settings or get_settings()
    if not settings.supabase_configured:
        raise SupabaseClientError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    try:
        _supabase_client = await acreate_client(settings.supabase_url, settings.supabase_service_key)
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e
    return _supabase_client


@lru_cache(maxsize=4)
def get_redis_client(redis_url: Optional[str] = None) -> redis.Redis:
    """
    Get the singleton async Redis client for a URL.

    Responses are left as bytes; the key/value store stores raw payloads.
    """
    return redis.from_url(redis_url or get_settings().redis_url, decode_responses=False)

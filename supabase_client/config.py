# supabase_client/config.py
"""Factory for the async Supabase client (PostgREST + Auth + Realtime)."""

from __future__ import annotations

import os
from typing import Optional

from supabase import AsyncClient, acreate_client


async def get_supabase_client(
    url: Optional[str] = None,
    key: Optional[str] = None,
) -> AsyncClient:
    """Return an async Supabase client if credentials are set."""
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_ANON_KEY")
    if not url or not key:
        raise RuntimeError("Supabase credentials not set in environment variables.")
    return await acreate_client(url, key)


async def get_admin_client(
    url: Optional[str] = None,
    service_role_key: Optional[str] = None,
) -> AsyncClient:
    """
    Client with service-role privileges; bypasses row-level security.

    Only for account deletion, never for row access.
    """
    url = url or os.getenv("SUPABASE_URL")
    service_role_key = service_role_key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not service_role_key:
        raise RuntimeError("Account deletion needs SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
    return await acreate_client(url, service_role_key)

# supabase_client/auth.py
"""
Thin wrappers over Supabase Auth used by the login / account pages.

Each helper returns `(value, error_message)` instead of raising, so pages can
render the message next to the form.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from supabase import AsyncClient

from core.store import Identity

logger = logging.getLogger(__name__)

SITE_URL = os.getenv("SITE_URL", "http://localhost:8501")
MIN_PASSWORD_LENGTH = 6


def _identity_from_user(user) -> Optional[Identity]:
    if user is None:
        return None
    meta = getattr(user, "user_metadata", None) or {}
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None),
        name=meta.get("full_name") or meta.get("name"),
    )


def _message(exc: Exception) -> str:
    return str(getattr(exc, "message", None) or exc) or "Authentication failed"


async def sign_in(client: AsyncClient, email: str, password: str) -> Tuple[Optional[Identity], Optional[str]]:
    try:
        res = await client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:  # noqa: BLE001 - AuthApiError, network errors
        logger.info("[Supabase] sign-in rejected for %s: %s", email, _message(e))
        return None, _message(e)
    identity = _identity_from_user(getattr(res, "user", None))
    if identity is None:
        return None, "Sign-in returned no user"
    return identity, None


async def sign_up(
    client: AsyncClient,
    email: str,
    password: str,
    name: str = "",
) -> Tuple[Optional[Identity], Optional[str]]:
    try:
        res = await client.auth.sign_up(
            {
                "email": email,
                "password": password,
                "options": {"data": {"name": name}, "email_redirect_to": SITE_URL},
            }
        )
    except Exception as e:  # noqa: BLE001
        return None, _message(e)
    return _identity_from_user(getattr(res, "user", None)), None


async def sign_out(client: AsyncClient) -> Optional[str]:
    try:
        await client.auth.sign_out()
    except Exception as e:  # noqa: BLE001
        return _message(e)
    return None


async def reset_password(client: AsyncClient, email: str) -> Optional[str]:
    """Send the password reset e-mail."""
    try:
        await client.auth.reset_password_for_email(email, {"redirect_to": SITE_URL})
    except Exception as e:  # noqa: BLE001
        return _message(e)
    return None


async def update_account(
    client: AsyncClient,
    name: str,
    email: str,
) -> Tuple[Optional[Identity], Optional[str]]:
    """Change display name and e-mail. A new e-mail must be confirmed by mail."""
    name, email = (name or "").strip(), (email or "").strip()
    if not name:
        return None, "Name is required"
    if not email:
        return None, "Email is required"
    try:
        res = await client.auth.update_user({"email": email, "data": {"name": name}})
    except Exception as e:  # noqa: BLE001
        return None, _message(e)
    return _identity_from_user(getattr(res, "user", None)), None


async def update_password(client: AsyncClient, password: str) -> Optional[str]:
    """Set a new password for the signed-in user (e.g. after the reset mail)."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    try:
        await client.auth.update_user({"password": password})
    except Exception as e:  # noqa: BLE001
        return _message(e)
    return None


async def delete_account(client: AsyncClient, admin: AsyncClient) -> Optional[str]:
    """Delete the signed-in user with the service-role client, then sign out."""
    try:
        res = await client.auth.get_user()
    except Exception as e:  # noqa: BLE001
        return _message(e)
    identity = _identity_from_user(getattr(res, "user", None) if res else None)
    if identity is None:
        return "Not authenticated"
    try:
        await admin.auth.admin.delete_user(identity.id)
    except Exception as e:  # noqa: BLE001
        logger.warning("[Supabase] deleting account %s failed: %s", identity.id, _message(e))
        return _message(e)
    logger.info("[Supabase] account %s deleted", identity.id)
    return await sign_out(client)

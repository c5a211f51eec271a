# midwestea/services/supabase_auth.py
# Supabase Auth (GoTrue) admin API over httpx
#
# Students and admins are Supabase identities; students.id / admins.id reuse
# the auth user id. All calls here use the service-role key and must only be
# made from server-side handlers.

import logging
from typing import Optional
from uuid import UUID

import httpx

from midwestea.core.config import settings

logger = logging.getLogger("midwestea.supabase_auth")

REQUEST_TIMEOUT = 15.0
USERS_PAGE_SIZE = 1000


class SupabaseAuthError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _headers() -> dict:
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise SupabaseAuthError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return {
        "apikey": settings.supabase_service_role_key,
        "Authorization": f"Bearer {settings.supabase_service_role_key}",
        "Content-Type": "application/json",
    }


def _request(method: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None) -> dict:
    response = httpx.request(
        method,
        f"{settings.supabase_url.rstrip('/')}/auth/v1{path}",
        headers=_headers(),
        json=json,
        params=params,
        timeout=REQUEST_TIMEOUT,
    )
    if response.is_error:
        try:
            body = response.json()
            message = body.get("msg") or body.get("message") or body.get("error_description") or response.text
        except ValueError:
            message = response.text
        raise SupabaseAuthError(message, status_code=response.status_code)
    return response.json() if response.content else {}


# ── Users ─────────────────────────────────────────────────────────────────────

def find_user_by_email(email: str) -> Optional[dict]:
    """
    The admin API cannot filter by email, so page through users.
    Fine at MidwestEA's scale (low thousands of identities).
    """
    target = email.strip().lower()
    page = 1
    while True:
        body = _request("GET", "/admin/users", params={"page": page, "per_page": USERS_PAGE_SIZE})
        users = body.get("users", [])
        for user in users:
            if (user.get("email") or "").lower() == target:
                return user
        if len(users) < USERS_PAGE_SIZE:
            return None
        page += 1


def create_user(email: str) -> dict:
    """Create a confirmed identity (checkout users never get a confirm email)."""
    user = _request("POST", "/admin/users", json={"email": email, "email_confirm": True})
    logger.info(f"Created auth user {user.get('id')} for {email}")
    return user


def find_or_create_user(email: str) -> tuple[dict, bool]:
    """Returns (user, existed)."""
    user = find_user_by_email(email)
    if user:
        return user, True
    return create_user(email), False


def get_user(user_id: UUID) -> dict:
    return _request("GET", f"/admin/users/{user_id}")


def update_user_email(user_id: UUID, email: str) -> dict:
    return _request("PUT", f"/admin/users/{user_id}", json={"email": email, "email_confirm": True})


# ── Sign-in ───────────────────────────────────────────────────────────────────

def send_otp(email: str, redirect_to: Optional[str] = None) -> None:
    """
    Email a one-time sign-in code. Callers gate on the admins table first,
    so an admin without an identity yet gets one created here.
    """
    payload = {"email": email, "create_user": True}
    params = {"redirect_to": redirect_to} if redirect_to else None
    _request("POST", "/otp", json=payload, params=params)

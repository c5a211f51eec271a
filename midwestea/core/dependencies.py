# midwestea/core/dependencies.py
# FastAPI dependency functions for authentication and authorization
#
# Admin app requests carry the Supabase session token as a Bearer header.
# A valid token is not enough: the identity must also be a live row in admins.

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from midwestea.core.security import decode_access_token
from midwestea.db.session import get_db
from midwestea.models.admin import Admin

# Bearer token extractor -- auto_error=False so we can handle 401 ourselves
bearer_scheme = HTTPBearer(auto_error=False)


# ── Token Extraction ──────────────────────────────────────────────────────────

def _extract_user_id(
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[UUID]:
    """
    Internal helper: decode the Bearer token and return the auth user id.
    Raises 401 for a missing header. Returns None for an unusable token.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None

    try:
        return UUID(str(payload["sub"]))
    except ValueError:
        return None


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UUID:
    """Requires a valid Supabase session. Raises 401 otherwise."""
    user_id = _extract_user_id(credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Invalid session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


# ── Auth Dependencies ─────────────────────────────────────────────────────────

def get_current_admin(user_id: UUID, db: Session) -> Optional[Admin]:
    """Look up a non-deleted admin row for an auth user id."""
    return db.query(Admin).filter(
        Admin.id == user_id,
        Admin.deleted_at.is_(None),
    ).first()


def require_admin(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Admin:
    """
    Requires a registered admin. Raises 403 for any other identity.
    Use for: every admin app endpoint.
    """
    admin = get_current_admin(user_id, db)
    if not admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin not found. Please ensure you are registered as an admin.",
        )
    return admin

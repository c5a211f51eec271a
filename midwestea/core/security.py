# midwestea/core/security.py
# Supabase access-token decoding
# Used by: dependencies.py
#
# Supabase signs session access tokens with the project JWT secret (HS256).
# Payload of interest:
#   sub   -- auth user UUID as string
#   email -- auth email
#   aud   -- "authenticated"
#   exp   -- expiry timestamp

import re
from typing import Optional

from jose import JWTError, jwt

from midwestea.core.config import settings

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and validate a Supabase access token.
    Returns the payload dict if valid, None if expired, forged or unconfigured.
    Does NOT check the admins table -- use dependencies.py for that.
    """
    if not settings.supabase_jwt_secret:
        return None
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.supabase_jwt_audience,
        )
    except JWTError:
        return None


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))

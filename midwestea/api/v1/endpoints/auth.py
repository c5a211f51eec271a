# midwestea/api/v1/endpoints/auth.py
# Admin sign-in: one-time codes are only ever sent to registered admins
#
# The admin app exchanges the emailed code with Supabase directly and then
# sends the resulting access token as a Bearer header to every admin route.

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.db.session import get_db
from midwestea.models.admin import Admin
from midwestea.schemas.admin import SendOtpRequest
from midwestea.services import supabase_auth
from midwestea.services.supabase_auth import SupabaseAuthError

logger = logging.getLogger("midwestea.auth")

router = APIRouter()


@router.post(
    "/send-otp",
    summary="Email a sign-in code to an admin",
)
def send_otp(
    payload: SendOtpRequest,
    db: Session = Depends(get_db),
):
    """
    Unknown or deleted admins get the same 403 as any other failure so the
    endpoint does not reveal who is an admin.
    """
    if not payload.email or not payload.email.strip():
        raise HTTPException(status_code=400, detail="Email is required")

    email = payload.email.strip().lower()
    admin = db.query(Admin).filter(
        Admin.email == email,
        Admin.deleted_at.is_(None),
    ).first()
    if not admin:
        logger.warning(f"OTP requested for non-admin email {email}")
        raise HTTPException(
            status_code=403,
            detail="Failed to send OTP. Please check your email address.",
        )

    try:
        supabase_auth.send_otp(email)
    except SupabaseAuthError as e:
        logger.error(f"OTP send failed for {email}: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to send OTP")

    return {"success": True}

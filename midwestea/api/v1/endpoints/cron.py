# midwestea/api/v1/endpoints/cron.py
# Scheduled trigger endpoints, called by the hosting platform's cron

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.core.config import settings
from midwestea.db.session import get_db
from midwestea.jobs.heartbeat import run_heartbeat

logger = logging.getLogger("midwestea.cron")

router = APIRouter()


@router.post(
    "/heartbeat",
    summary="Insert a heartbeat row so the database never idles",
)
def heartbeat(
    x_cron_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """X-Cron-Secret must match CRON_SECRET when one is configured."""
    if settings.cron_secret and x_cron_secret != settings.cron_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        run_heartbeat(db)
    except SQLAlchemyError as e:
        logger.error(f"Heartbeat insert failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to insert log entry: {e}")

    return {"success": True, "message": "Log entry inserted successfully"}

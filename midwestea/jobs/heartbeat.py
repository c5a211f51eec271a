# midwestea/jobs/heartbeat.py
# Database keep-alive job
#
# Supabase pauses projects that see no writes for a while. One log row per
# run is enough to keep it awake.
#
# Usage:
#   python -m midwestea.jobs.heartbeat
#   POST /api/cron/heartbeat   (same insert, triggered by the platform cron)

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import midwestea.db.base  # noqa: F401
from midwestea.models.log import Log
from midwestea.services.audit_log import insert_heartbeat

log = logging.getLogger("midwestea.jobs.heartbeat")


def run_heartbeat(db: Session) -> Log:
    """Insert one heartbeat row. Committing is left to the caller."""
    entry = insert_heartbeat(db)
    log.info(f"Heartbeat inserted at {entry.timestamp.isoformat()}")
    return entry


def main() -> int:
    parser = argparse.ArgumentParser(description="Insert a heartbeat row into logs")
    parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from midwestea.db.session import SessionLocal

    db = SessionLocal()
    try:
        run_heartbeat(db)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log.error(f"Heartbeat failed: {exc}")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

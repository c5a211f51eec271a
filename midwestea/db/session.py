# midwestea/db/session.py
# Database session management
#
# Production: Supabase Postgres via DATABASE_URL (pooler connection string)
# Tests:      SQLite in-memory, get_db overridden in tests/conftest.py
#
# FastAPI endpoints get a session via: Depends(get_db)

from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session

from midwestea.core.config import settings


def _engine_options(database_url: str) -> dict:
    """
    Pool options only apply to server databases.
    SQLite uses its own single-connection pools and rejects them.
    """
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,   # Supabase pooler drops idle connections
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 1800,    # Recycle connections every 30 min
    }


# ── Engine ────────────────────────────────────────────────────────────────────
engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

# ── Session Factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Prevents lazy load errors after commit
)


# ── FastAPI Dependency ────────────────────────────────────────────────────────
def get_db() -> Generator[Session, None, None]:
    """
    One session per request, e.g.

        @router.post("/reconcile")
        def reconcile_transaction(body: ReconcileRequest, db: Session = Depends(get_db)):

    Commits when the handler returns, rolls back if it raises.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ── Health Check Helper ───────────────────────────────────────────────────────
def check_db_connection() -> bool:
    """SELECT 1 against the pool. Backs the startup check and /health."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False

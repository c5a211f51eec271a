# midwestea/main.py
# MidwestEA FastAPI application entry point
#
# Startup:  optional migrations, DB connection check, Redis ping
# Shutdown: Clean connection pool disposal
# Routes:   /health, /api/* (all endpoints via master router)

import logging
from contextlib import asynccontextmanager

import redis as redis_lib
from alembic import command
from alembic.config import Config
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from midwestea.api.v1.router import api_router
from midwestea.core.config import settings
from midwestea.core.errors import register_exception_handlers
from midwestea.db.session import check_db_connection, engine

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("midwestea")


def run_startup_migrations() -> bool:
    """Run `alembic upgrade head` using the project alembic.ini."""
    try:
        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")
        logger.info("Database migrations: OK")
        return True
    except Exception as exc:
        logger.warning(f"Database migrations failed -- {exc}")
        return False


def redis_available(timeout: float = 1) -> bool:
    try:
        r = redis_lib.from_url(settings.redis_url, socket_connect_timeout=timeout)
        r.ping()
        r.close()
        return True
    except redis_lib.RedisError:
        return False


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} v{settings.app_version} [{settings.app_env}]")

    if settings.auto_migrate_on_startup:
        run_startup_migrations()

    if check_db_connection():
        logger.info("Database connection: OK")
    else:
        logger.warning("Database connection failed -- check DATABASE_URL")

    if redis_available(timeout=2):
        logger.info("Redis connection: OK")
    else:
        logger.warning("Redis connection failed -- check REDIS_URL")

    yield  # App runs here

    logger.info("Shutting down -- disposing DB connection pool")
    engine.dispose()


# ── App Instance ──────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "MidwestEA platform API: class checkout, enrollment, payment webhooks "
        "and transaction reconciliation."
    ),
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
    debug=settings.debug,
)

register_exception_handlers(app)


# ── CORS ──────────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ────────────────────────────────────────────────────────────────────

app.include_router(api_router, prefix="/api")


# ── Health Check ──────────────────────────────────────────────────────────────

@app.get("/health", tags=["Health"], include_in_schema=False)
def health_check():
    """
    Always 200 while the process is up.
    DB and Redis status included for observability.
    """
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.app_env,
            "services": {
                "database": "ok" if check_db_connection() else "unavailable",
                "redis": "ok" if redis_available() else "unavailable",
            },
        },
    )


@app.get("/", include_in_schema=False)
def root():
    return JSONResponse(
        content={
            "message": "MidwestEA API",
            "docs": "/api/docs",
            "health": "/health",
        }
    )

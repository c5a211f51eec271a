# alembic/env.py
# Alembic migration environment
#
# Key responsibilities:
#   1. Take the database URL from the same Settings the app uses
#   2. Import all models via midwestea/db/base.py so Alembic detects schema changes
#   3. Support both offline (SQL script) and online (live connection) modes

import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

# ── Make midwestea importable from alembic/ directory ────────────────────────
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# ── Alembic Config ────────────────────────────────────────────────────────────
config = context.config

# Loggers come from the [loggers] sections of alembic.ini
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# ── Metadata ──────────────────────────────────────────────────────────────────
import midwestea.db.base  # noqa: F401,E402 -- registers all models as side effect
from midwestea.core.config import settings  # noqa: E402
from midwestea.db.base_class import Base  # noqa: E402

target_metadata = Base.metadata


def get_url() -> str:
    """DATABASE_URL from the environment or .env, via pydantic-settings."""
    return settings.database_url


# ── Offline Mode ──────────────────────────────────────────────────────────────
# Emits SQL for review, e.g. before a Supabase SQL-editor run:
#   alembic upgrade head --sql > midwestea.sql
def run_migrations_offline() -> None:
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


# ── Online Mode ───────────────────────────────────────────────────────────────
# Usage: alembic upgrade head
def run_migrations_online() -> None:
    # sqlalchemy.url in alembic.ini is intentionally empty
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,    # No connection pooling for migrations
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()


# ── Entry Point ───────────────────────────────────────────────────────────────
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

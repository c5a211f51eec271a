# tests/conftest.py
# Shared fixtures: in-memory SQLite, get_db override, admin tokens
#
# Settings are read once at import time, so the environment is set up
# before anything from midwestea is imported.

import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "https://auth.example.test"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-role-test"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["CRON_SECRET"] = "cron-test-secret"
os.environ["REDIS_URL"] = "redis://localhost:6399/0"

import uuid  # noqa: E402
from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import midwestea.db.base  # noqa: F401,E402
from midwestea.db.base_class import Base  # noqa: E402
from midwestea.db.session import get_db  # noqa: E402
from midwestea.main import app  # noqa: E402
from midwestea.models.admin import Admin  # noqa: E402
from midwestea.models.class_ import Class, Course  # noqa: E402
from midwestea.models.student import Student  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite opens transactions lazily, which breaks SAVEPOINT (begin_nested).
# Let SQLAlchemy emit BEGIN itself.
@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """Requests share the test's session, with the same commit/rollback as get_db."""
    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ── Auth ──────────────────────────────────────────────────────────────────────

def make_token(user_id: uuid.UUID, secret: str = "test-jwt-secret") -> str:
    payload = {
        "sub": str(user_id),
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def admin(db):
    row = Admin(
        id=uuid.uuid4(),
        display_name="Dana Admin",
        email="dana@midwestea.com",
        admin_level="super",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {make_token(admin.id)}"}


@pytest.fixture
def non_admin_headers():
    return {"Authorization": f"Bearer {make_token(uuid.uuid4())}"}


# ── Catalogue ─────────────────────────────────────────────────────────────────

@pytest.fixture
def course(db):
    row = Course(
        course_name="Emergency Medical Technician",
        course_code="EMT",
        program_type="course",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def emt_class(db, course):
    today = date.today()
    row = Class(
        course_uuid=course.id,
        class_name="EMT Basic",
        course_code="EMT",
        class_id="EMT-001",
        enrollment_start=today - timedelta(days=10),
        enrollment_close=today + timedelta(days=10),
        class_start_date=date(2026, 12, 1),
        class_close_date=date(2027, 3, 1),
        location="Minneapolis",
        is_online=False,
        price=165000,
        registration_fee=30000,
        stripe_price_id="price_123",
        stripe_payment_link="https://buy.stripe.com/test_emt",
    )
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def student(db):
    row = Student(
        id=uuid.uuid4(),
        first_name="Jane",
        last_name="Doe",
        full_name="Jane Doe",
        email="jane@example.com",
    )
    db.add(row)
    db.commit()
    return row

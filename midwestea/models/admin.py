# midwestea/models/admin.py
# Admin allowlist -- a Supabase identity is an admin only if it has a row here

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from midwestea.db.base_class import Base


class Admin(Base):
    """
    Staff member allowed into the admin app.
    id equals the auth user id. Soft-deleted via deleted_at.
    """
    __tablename__ = "admins"

    id = Column(UUID(as_uuid=True), primary_key=True)
    display_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    admin_level = Column(String(50), nullable=False, default="standard")
    permissions = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None

    def __repr__(self) -> str:
        return f"<Admin email={self.email} level={self.admin_level}>"

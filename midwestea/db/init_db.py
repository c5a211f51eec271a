# midwestea/db/init_db.py
# Seed initial data into the database
# Run once after migrations: python -m midwestea.db.init_db
#
# Creates:
#   1. The UNASSIGNED placeholder class used by payments with no known class
#   2. A bootstrap admin (ADMIN_EMAIL / ADMIN_NAME), linked to its auth identity

import os
from uuid import UUID

from dotenv import load_dotenv

import midwestea.db.base  # noqa: F401
from midwestea.db.session import SessionLocal
from midwestea.models.admin import Admin
from midwestea.services import supabase_auth
from midwestea.services.enrollment_service import get_or_create_placeholder_class
from midwestea.services.supabase_auth import SupabaseAuthError

load_dotenv()


def seed_placeholder_class(db) -> None:
    placeholder = get_or_create_placeholder_class(db)
    print(f"  Placeholder class ready: {placeholder.class_id}")


def seed_admin(db) -> None:
    """Create the bootstrap admin if ADMIN_EMAIL is set and no row exists."""
    admin_email = (os.getenv("ADMIN_EMAIL") or "").strip().lower()
    admin_name = os.getenv("ADMIN_NAME", "MidwestEA Admin")
    if not admin_email:
        print("  ADMIN_EMAIL not set, skipping admin")
        return

    existing = db.query(Admin).filter(Admin.email == admin_email).first()
    if existing:
        print(f"  Admin already exists: {admin_email}")
        return

    try:
        user, _ = supabase_auth.find_or_create_user(admin_email)
    except SupabaseAuthError as exc:
        print(f"  WARNING: could not resolve auth user for {admin_email} -- {exc}")
        return

    db.add(Admin(
        id=UUID(str(user["id"])),
        display_name=admin_name,
        email=admin_email,
        admin_level="super",
    ))
    db.flush()
    print(f"  Admin created: {admin_email}")


def main() -> None:
    print("Seeding database...")
    db = SessionLocal()
    try:
        seed_placeholder_class(db)
        seed_admin(db)
        db.commit()
        print("Done.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

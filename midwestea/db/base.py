# midwestea/db/base.py
# Model registry: pulls in Base and every model so metadata knows all tables.
# Do NOT import this file from model files (use midwestea.db.base_class instead).
# This file is imported by:
#   - alembic/env.py          (schema detection)
#   - midwestea/db/init_db.py (seeding)
#   - endpoint modules        (so relationship() strings resolve)

from midwestea.db.base_class import Base  # noqa: F401

# ── Import all models here so Alembic can detect them ────────────────────────
# Order matters: parent tables before child tables (foreign key dependencies)

from midwestea.models.admin import Admin                                      # noqa: F401, E402
from midwestea.models.class_ import Course, Class                             # noqa: F401, E402
from midwestea.models.student import Student, Enrollment, Waitlist            # noqa: F401, E402
from midwestea.models.payment import Payment, Transaction, InvoiceToImport    # noqa: F401, E402
from midwestea.models.log import Log, EmailLog                                # noqa: F401, E402

# midwestea/services/course_catalog.py
# Course lookups used by public checkout pages and class creation:
# URL slug -> course code, and the next "{COURSE}-{NNN}" class id.

import re
from typing import Optional

from sqlalchemy.orm import Session

from midwestea.models.class_ import Class

# Marketing site slugs, including short codes and known misspellings
SLUG_TO_COURSE_CODE = {
    "emergency-medical-response": "EMR",
    "emr": "EMR",
    "paramedic": "PARA",
    "para": "PARA",
    "critical-care-transport": "CCT",
    "cct": "CCT",
    "emergency-medical-technician": "EMT",
    "emt": "EMT",
    "community-paramedic": "CP",
    "cp": "CP",
    "advanced-tactical-casualty-care": "ATCC",
    "atcc": "ATCC",
    "advanced-cardiovascular-life-support": "ACLS",
    "acls": "ACLS",
    "basic-life-support": "BLS",
    "bls": "BLS",
    "cpr-first-aid": "CPR",
    "cpr": "CPR",
    "first-aid": "CPR",
    "child-babysitting-safety": "CABS",
    "cabs": "CABS",
    "active-violence-emergency-response": "AVERT",
    "avert": "AVERT",
    "pediatric-cpr": "PEDS",
    "peds": "PEDS",
    "emergency-oxygen": "OXY",
    "oxy": "OXY",
    "pediatric-advanced-life-support": "PALS",
    "pals": "PALS",
    "bloodborne-pathogens": "PATH",
    "path": "PATH",
    "bloodborne-pathodgens": "PATH",
    "epinephrine": "EPI",
    "epi": "EPI",
}


def get_course_code_from_slug(slug: str) -> Optional[str]:
    return SLUG_TO_COURSE_CODE.get((slug or "").strip().lower())


def generate_class_id(db: Session, course_code: str) -> str:
    """
    Next free id for a course: EMT-001, EMT-002 ...
    Suffixes that are not plain numbers are ignored.
    """
    prefix = course_code.strip().upper()
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")

    existing = db.query(Class.class_id).filter(Class.class_id.like(f"{prefix}-%")).all()
    highest = 0
    for (class_id,) in existing:
        match = pattern.match(class_id or "")
        if match:
            highest = max(highest, int(match.group(1)))

    return f"{prefix}-{highest + 1:03d}"

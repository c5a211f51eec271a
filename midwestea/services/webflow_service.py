# midwestea/services/webflow_service.py
# Webflow CMS sync for classes (Data API v2 over httpx)
#
# Classes of a "program" go to the Programs collection, everything else to
# the Courses collection. Items are created as drafts and published by staff.

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from midwestea.core.config import settings
from midwestea.models.class_ import Class
from midwestea.services.formatting import cents_to_dollars

logger = logging.getLogger("midwestea.webflow")

WEBFLOW_API_BASE = "https://api.webflow.com/v2"
REQUEST_TIMEOUT = 30.0


class WebflowError(Exception):
    pass


@dataclass
class WebflowConfig:
    api_token: str
    site_id: str
    collection_id: str


def get_webflow_config(program_type: Optional[str]) -> Optional[WebflowConfig]:
    """Pick the collection for a program type. None when anything is unset."""
    if not settings.webflow_api_token or not settings.webflow_site_id:
        logger.error("Missing Webflow API configuration (WEBFLOW_API_TOKEN / WEBFLOW_SITE_ID)")
        return None

    if program_type == "program":
        collection_id = settings.webflow_programs_collection_id
    else:
        collection_id = settings.webflow_courses_collection_id

    if not collection_id:
        logger.error(f"Missing Webflow collection ID for program type: {program_type}")
        return None

    return WebflowConfig(
        api_token=settings.webflow_api_token,
        site_id=settings.webflow_site_id,
        collection_id=collection_id,
    )


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def map_class_to_fields(class_: Class, is_program: bool = False) -> dict:
    """Map a class row onto the collection's field slugs."""
    name = class_.class_name or class_.class_id or "Class"
    fields = {
        "name": name,
        "slug": slugify(class_.class_id or name),
        "is-online": bool(class_.is_online),
    }

    if class_.course_code:
        fields["program-code" if is_program else "course-code"] = class_.course_code
    if class_.class_id:
        fields["class-id"] = class_.class_id

    for column, slug in (
        ("enrollment_start", "enrollment-start"),
        ("enrollment_close", "enrollment-close"),
        ("class_start_date", "class-start-date"),
        ("class_close_date", "class-close-date"),
    ):
        value = getattr(class_, column)
        if value:
            fields[slug] = value.isoformat()

    if class_.location:
        fields["location"] = class_.location
    if class_.product_id:
        fields["product-id"] = class_.product_id
    if class_.length_of_class:
        fields["length-of-class"] = class_.length_of_class
    if class_.certification_length is not None:
        fields["certification-length"] = class_.certification_length
    if class_.graduation_rate is not None:
        fields["graduation-rate"] = class_.graduation_rate
    if class_.registration_limit is not None:
        fields["registration-limit"] = str(class_.registration_limit)
    if class_.price is not None:
        fields["price"] = cents_to_dollars(class_.price)
    if class_.registration_fee is not None:
        fields["registration-fee"] = cents_to_dollars(class_.registration_fee)

    return fields


def _request(config: WebflowConfig, method: str, path: str, json: dict) -> dict:
    response = httpx.request(
        method,
        f"{WEBFLOW_API_BASE}{path}",
        json=json,
        headers={
            "Authorization": f"Bearer {config.api_token}",
            "accept": "application/json",
        },
        timeout=REQUEST_TIMEOUT,
    )
    if response.is_error:
        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text
        raise WebflowError(f"Webflow API error {response.status_code}: {message}")
    return response.json()


def create_class_item(config: WebflowConfig, class_: Class, is_program: bool = False) -> str:
    """Create a draft item and return its Webflow id."""
    item = _request(
        config,
        "POST",
        f"/collections/{config.collection_id}/items",
        {"isDraft": True, "isArchived": False, "fieldData": map_class_to_fields(class_, is_program)},
    )
    if not item.get("id"):
        raise WebflowError("Webflow item created but missing ID")
    logger.info(f"Webflow item {item['id']} created for class {class_.class_id}")
    return item["id"]


def update_class_item(
    config: WebflowConfig,
    webflow_item_id: str,
    class_: Class,
    is_program: bool = False,
) -> None:
    _request(
        config,
        "PATCH",
        f"/collections/{config.collection_id}/items/{webflow_item_id}",
        {"fieldData": map_class_to_fields(class_, is_program)},
    )
    logger.info(f"Webflow item {webflow_item_id} updated for class {class_.class_id}")


def sync_class(class_: Class) -> tuple[Optional[str], Optional[str]]:
    """
    Create or update the Webflow item for a class.
    Returns (webflow_item_id, error). Never raises: CMS problems must not
    block class management.
    """
    program_type = class_.course.program_type if class_.course else None
    config = get_webflow_config(program_type)
    if not config:
        return class_.webflow_item_id, "Webflow config missing"

    is_program = program_type == "program"
    try:
        if class_.webflow_item_id:
            update_class_item(config, class_.webflow_item_id, class_, is_program)
            return class_.webflow_item_id, None
        return create_class_item(config, class_, is_program), None
    except (WebflowError, httpx.HTTPError) as exc:
        logger.error(f"Webflow sync failed for class {class_.class_id}: {exc}")
        return class_.webflow_item_id, str(exc)

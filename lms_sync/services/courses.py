"""
Course collection service.
"""

from collections.abc import Mapping
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.core.exceptions import ResourceNotFoundError, ValidationError
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item
from lms_sync.services.base import MetaQuery, QueryParams, ResourceService, build_query_params, rendered


logger = get_logger(__name__)

VALID_COURSE_STATUSES = ["publish", "draft", "private", "pending"]
COURSE_TAXONOMIES = ["qe_category", "qe_difficulty", "qe_topic", "course_type"]

# input key -> meta key
COURSE_META_FIELDS = {
    "price": "_course_price",
    "sale_price": "_sale_price",
    "difficulty": "_course_difficulty",
    "category": "_course_category",
    "duration": "_course_duration",
    "max_students": "_max_students",
    "start_date": "_start_date",
    "end_date": "_end_date",
}


def _taxonomy_ids(value: Any) -> list[int]:
    if not isinstance(value, (list, tuple)):
        value = [value]
    ids = []
    for raw in value:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            continue
    return [i for i in ids if i > 0]


def sanitize_course(course: Mapping[str, Any]) -> Item:
    """Normalize a raw course record from the REST API."""
    sanitized = {
        "id": course.get("id") or 0,
        "title": rendered(course.get("title")),
        "content": rendered(course.get("content")),
        "excerpt": rendered(course.get("excerpt")),
        "status": course.get("status") or "draft",
        "date": course.get("date") or "",
        "modified": course.get("modified") or "",
        "slug": course.get("slug") or "",
        "author": course.get("author") or 0,
        "featured_media": course.get("featured_media") or 0,
        "meta": dict(course.get("meta") or {}),
        "enrolled_users_count": course.get("enrolled_users_count") or 0,
        "lessons_count": course.get("lessons_count") or 0,
    }
    for taxonomy in COURSE_TAXONOMIES:
        value = course.get(taxonomy)
        sanitized[taxonomy] = list(value) if isinstance(value, list) else []
    return sanitized


def _number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_course(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    """Check outgoing course data; returns a list of problems."""
    errors = []

    if not partial or "title" in data:
        if not str(data.get("title") or "").strip():
            errors.append("Course title is required")

    status = data.get("status")
    if status and status not in VALID_COURSE_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_COURSE_STATUSES)}")

    for taxonomy in COURSE_TAXONOMIES:
        if taxonomy in data and not isinstance(data[taxonomy], (list, tuple)):
            errors.append(f"{taxonomy} must be an array")

    price = _number(data.get("price")) if data.get("price") not in (None, "") else None
    if price is not None and price < 0:
        errors.append("Price must be a positive number")

    sale_price = _number(data.get("sale_price")) if data.get("sale_price") not in (None, "") else None
    if sale_price is not None:
        if sale_price < 0:
            errors.append("Sale price must be a positive number")
        elif price is not None and sale_price > price:
            errors.append("Sale price cannot be higher than the regular price")

    return errors


def transform_course(data: Mapping[str, Any]) -> dict[str, Any]:
    """Build the REST payload; only keys present in ``data`` are sent."""
    payload: dict[str, Any] = {}
    for key in ("title", "content", "excerpt", "status"):
        if key in data:
            payload[key] = data[key]
    if "description" in data and "content" not in data:
        payload["content"] = data["description"]

    if "featured_media" in data:
        payload["featured_media"] = int(_number(data["featured_media"]) or 0)

    for taxonomy in COURSE_TAXONOMIES:
        if taxonomy in data:
            payload[taxonomy] = _taxonomy_ids(data[taxonomy])

    meta = {meta_key: data[key] for key, meta_key in COURSE_META_FIELDS.items() if key in data}
    if "featured" in data:
        meta["_featured"] = "yes" if data["featured"] else "no"
    if isinstance(data.get("meta"), Mapping):
        meta.update(data["meta"])
    if meta:
        payload["meta"] = meta
    return payload


def build_course_params(options: Mapping[str, Any]) -> QueryParams:
    """List query for courses: taxonomy ids plus meta filters."""
    params = build_query_params(options)
    meta_query = MetaQuery(params)

    for taxonomy, key in (("qe_category", "category"), ("qe_difficulty", "difficulty"), ("qe_topic", "topic")):
        value = options.get(taxonomy, options.get(key))
        if value is None:
            continue
        ids = _taxonomy_ids(value)
        if ids:
            params.append((taxonomy, ",".join(str(i) for i in ids)))
        else:
            meta_key = COURSE_META_FIELDS.get(key)
            if meta_key:
                meta_query.add(meta_key, value)

    if options.get("featured"):
        meta_query.add("_featured", "yes")

    return params


class CourseService(ResourceService):
    """Courses, with a server-assisted duplicate."""

    def __init__(self, client: WordPressClient):
        super().__init__(
            client,
            "course",
            "courses",
            sanitizer=sanitize_course,
            validator=validate_course,
            transformer=transform_course,
            build_params=build_course_params,
        )

    async def duplicate(self, item_id: int) -> Item:
        """Create a draft copy of a course from its canonical server record."""
        original = await self.get_one(item_id)
        if original is None:
            raise ResourceNotFoundError(f"Course {item_id} not found", status_code=404)

        meta = original.get("meta", {})
        duplicate_data = {
            "title": f"{original.get('title') or 'Untitled'} (Copy)",
            "content": original.get("content", ""),
            "excerpt": original.get("excerpt", ""),
            "status": "draft",
            "price": meta.get("_course_price", 0),
            "difficulty": meta.get("_course_difficulty", "intermediate"),
            "category": meta.get("_course_category", "general"),
            "duration": meta.get("_course_duration", 0),
            "max_students": meta.get("_max_students", 0),
            "featured": False,
        }
        if meta.get("_sale_price") not in (None, ""):
            duplicate_data["sale_price"] = meta["_sale_price"]
        for taxonomy in COURSE_TAXONOMIES:
            duplicate_data[taxonomy] = original.get(taxonomy, [])

        duplicated = await self.create(duplicate_data)
        logger.info("course_duplicated", source_id=item_id, id=duplicated.get("id"))
        return duplicated

    async def update_status(self, item_id: int, status: str) -> Item:
        if status not in ("publish", "draft", "private"):
            raise ValidationError([f"Invalid status: {status}"], self.resource_name)
        return await self.update(item_id, {"status": status})

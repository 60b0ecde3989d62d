"""
Lesson collection service.
"""

from collections.abc import Mapping
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.core.exceptions import ResourceNotFoundError
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item
from lms_sync.services.base import MetaQuery, QueryParams, ResourceService, build_query_params, rendered
from lms_sync.sync.pipeline import to_int


logger = get_logger(__name__)

VALID_LESSON_STATUSES = ["publish", "draft", "private", "pending"]
LESSON_TYPES = ["video", "text", "quiz", "assignment", "live", "mixed", "pdf", "audio"]
CONTENT_TYPES = ["free", "premium"]
COMPLETION_CRITERIA = ["view", "quiz", "assignment", "time", "manual"]

# input key -> meta key; the keys match the fields process_lesson derives
LESSON_META_FIELDS = {
    "course_id": "_course_id",
    "lesson_order": "_lesson_order",
    "duration_minutes": "_duration_minutes",
    "lesson_type": "_lesson_type",
    "video_url": "_video_url",
    "content_type": "_content_type",
    "prerequisite_lessons": "_prerequisite_lessons",
    "resources_urls": "_resources_urls",
    "completion_criteria": "_completion_criteria",
    "description": "_lesson_description",
    "steps": "_lesson_steps",
    "quiz_id": "_quiz_id",
}

LESSON_FLAG_FIELDS = {
    "is_required": "_is_required",
    "has_quiz": "_has_quiz",
}


def sanitize_lesson(lesson: Mapping[str, Any]) -> Item:
    return {
        "id": lesson.get("id"),
        "title": rendered(lesson.get("title")),
        "content": rendered(lesson.get("content")),
        "excerpt": rendered(lesson.get("excerpt")),
        "status": lesson.get("status") or "draft",
        "date": lesson.get("date"),
        "modified": lesson.get("modified"),
        "author": lesson.get("author"),
        "menu_order": lesson.get("menu_order") or 0,
        "meta": dict(lesson.get("meta") or {}),
    }


def _non_negative(value: Any) -> bool:
    try:
        return int(value) >= 0
    except (TypeError, ValueError):
        return False


def validate_lesson(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    """Check outgoing lesson data; values may come flat or under ``meta``."""
    errors = []
    meta = data.get("meta") if isinstance(data.get("meta"), Mapping) else {}

    def value(key: str) -> Any:
        return data[key] if key in data else meta.get(LESSON_META_FIELDS[key])

    if not partial or "title" in data:
        if not str(data.get("title") or "").strip():
            errors.append("Lesson title is required")

    status = data.get("status")
    if status and status not in VALID_LESSON_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(VALID_LESSON_STATUSES)}")

    course_id = value("course_id")
    if course_id in (None, ""):
        if not partial:
            errors.append("Course ID is required")
    elif to_int(course_id) <= 0:
        errors.append("Course ID must be a positive number")

    for key, label in (("lesson_order", "Lesson order"), ("duration_minutes", "Duration")):
        raw = value(key)
        if raw not in (None, "") and not _non_negative(raw):
            errors.append(f"{label} must be a non-negative number")

    for key, allowed, label in (
        ("lesson_type", LESSON_TYPES, "lesson type"),
        ("content_type", CONTENT_TYPES, "content type"),
        ("completion_criteria", COMPLETION_CRITERIA, "completion criteria"),
    ):
        raw = value(key)
        if raw and raw not in allowed:
            errors.append(f"Invalid {label}. Must be one of: {', '.join(allowed)}")

    video_url = value("video_url")
    if video_url and not str(video_url).startswith(("http://", "https://")):
        errors.append("Video URL must be a valid URL")

    for key in ("steps", "prerequisite_lessons"):
        raw = value(key)
        if raw is not None and not isinstance(raw, list):
            errors.append(f"{key} must be a list")

    return errors


def transform_lesson(data: Mapping[str, Any]) -> dict[str, Any]:
    """Build the REST payload; only keys present in ``data`` are sent."""
    payload = {key: data[key] for key in ("title", "content", "excerpt", "status") if key in data}
    if "lesson_order" in data:
        payload["menu_order"] = to_int(data["lesson_order"])

    meta = {meta_key: data[key] for key, meta_key in LESSON_META_FIELDS.items() if key in data}
    for key, meta_key in LESSON_FLAG_FIELDS.items():
        if key in data:
            meta[meta_key] = "yes" if data[key] else "no"
    if isinstance(data.get("meta"), Mapping):
        meta.update(data["meta"])
    if meta:
        payload["meta"] = meta
    return payload


def build_lesson_params(options: Mapping[str, Any]) -> QueryParams:
    """Lessons list in course order: ``menu_order`` ascending unless overridden."""
    params = build_query_params(
        {**options, "order_by": options.get("order_by", "menu_order"), "order": options.get("order", "asc")}
    )
    meta_query = MetaQuery(params)

    if options.get("course_id"):
        meta_query.add_numeric_id("_course_id", options["course_id"])
    for key, meta_key in (("lesson_type", "_lesson_type"), ("content_type", "_content_type")):
        if options.get(key):
            meta_query.add(meta_key, options[key])

    return params


class LessonService(ResourceService):
    """Lessons, with a duplicate that keeps the copy next to its source."""

    def __init__(self, client: WordPressClient):
        super().__init__(
            client,
            "lesson",
            "lessons",
            sanitizer=sanitize_lesson,
            validator=validate_lesson,
            transformer=transform_lesson,
            build_params=build_lesson_params,
        )

    async def duplicate(self, item_id: int) -> Item:
        """Create a draft copy ordered right after the original lesson."""
        original = await self.get_one(item_id)
        if original is None:
            raise ResourceNotFoundError(f"Lesson {item_id} not found", status_code=404)

        meta = dict(original.get("meta") or {})
        meta["_lesson_order"] = to_int(meta.get("_lesson_order") or 1) + 1
        duplicated = await self.create(
            {
                "title": f"{original.get('title') or 'Untitled'} (Copy)",
                "content": original.get("content", ""),
                "excerpt": original.get("excerpt", ""),
                "status": "draft",
                "meta": meta,
            }
        )
        logger.info("lesson_duplicated", source_id=item_id, id=duplicated.get("id"))
        return duplicated

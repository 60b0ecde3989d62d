"""
Lesson store.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from lms_sync.core.exceptions import ResourceNotFoundError
from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import LessonStats
from lms_sync.services.base import CollectionService, DEFAULT_STATUS
from lms_sync.sync.aggregates import count_status, safe_average, tally
from lms_sync.sync.pipeline import to_int
from lms_sync.sync.store import ResourceStore


def process_lesson(lesson: Item) -> Item:
    meta = lesson.get("meta") or {}
    steps = meta.get("_lesson_steps")
    if not isinstance(steps, list):
        steps = []
    prerequisites = meta.get("_prerequisite_lessons")
    if not isinstance(prerequisites, list):
        prerequisites = []
    video_url = meta.get("_video_url") or ""

    return {
        **lesson,
        "course_id": meta.get("_course_id") or None,
        "lesson_order": to_int(meta.get("_lesson_order")),
        "lesson_type": meta.get("_lesson_type") or "mixed",
        "content_type": meta.get("_content_type") or "free",
        "description": meta.get("_lesson_description") or "",
        "steps": list(steps),
        "steps_count": len(steps),
        "prerequisite_lessons": list(prerequisites),
        "completion_criteria": meta.get("_completion_criteria") or "view",
        "is_required": meta.get("_is_required") == "yes",
        "duration_minutes": to_int(meta.get("_duration_minutes")),
        "video_url": video_url,
        "has_quiz": meta.get("_has_quiz") == "yes",
        "quiz_id": meta.get("_quiz_id") or None,
        "has_video": bool(video_url),
        "has_steps": len(steps) > 0,
        "has_prerequisites": len(prerequisites) > 0,
    }


def lesson_stats(lessons: Sequence[Item]) -> LessonStats:
    if not lessons:
        return LessonStats()

    total = len(lessons)
    total_steps = sum(lesson.get("steps_count") or 0 for lesson in lessons)
    total_duration = sum(lesson.get("duration_minutes") or 0 for lesson in lessons)
    by_type: dict[str, int] = {}
    for lesson in lessons:
        tally(by_type, lesson.get("lesson_type") or "mixed")

    def flagged(flag: str) -> int:
        return sum(1 for lesson in lessons if lesson.get(flag))

    return LessonStats(
        total=total,
        published=count_status(lessons, "publish"),
        draft=count_status(lessons, "draft"),
        private=count_status(lessons, "private"),
        total_steps=total_steps,
        average_steps_per_lesson=round(safe_average(total_steps, total)),
        total_duration=total_duration,
        average_duration=round(safe_average(total_duration, total)),
        by_type=by_type,
        with_quizzes=flagged("has_quiz"),
        with_video=flagged("has_video"),
        with_prerequisites=flagged("has_prerequisites"),
        required_lessons=flagged("is_required"),
    )


class LessonStore(ResourceStore):
    """Lesson list screen state, ordered as the course presents it."""

    def __init__(
        self,
        service: CollectionService,
        *,
        search: str = "",
        course_id: Any = None,
        lesson_type: Any = None,
        status: str | None = None,
        **options: Any,
    ):
        initial: Mapping[str, Any] = {
            "search": search,
            "course_id": course_id,
            "lesson_type": lesson_type,
            "status": status or DEFAULT_STATUS,
        }
        super().__init__(
            service,
            "lesson",
            initial_filters=initial,
            data_processor=process_lesson,
            aggregate_calculator=lesson_stats,
            **options,
        )

    def _require(self, lesson_id: int) -> Item:
        lesson = self.find(lesson_id)
        if lesson is None:
            raise ResourceNotFoundError(f"Lesson {lesson_id} not found")
        return lesson

    async def publish(self, lesson_id: int) -> Item | None:
        return await self.update_item(lesson_id, {"status": "publish"})

    async def unpublish(self, lesson_id: int) -> Item | None:
        return await self.update_item(lesson_id, {"status": "draft"})

    async def update_order(self, lesson_id: int, order: int) -> Item | None:
        return await self.update_item(lesson_id, {"lesson_order": order})

    async def move_to_course(self, lesson_id: int, course_id: int) -> Item | None:
        return await self.update_item(lesson_id, {"course_id": course_id})

    async def update_type(self, lesson_id: int, lesson_type: str) -> Item | None:
        return await self.update_item(lesson_id, {"lesson_type": lesson_type})

    async def add_step(self, lesson_id: int, step: Any) -> Item | None:
        lesson = self._require(lesson_id)
        return await self.update_item(lesson_id, {"steps": [*lesson.get("steps", []), step]})

    async def remove_step(self, lesson_id: int, index: int) -> Item | None:
        lesson = self._require(lesson_id)
        steps = [step for i, step in enumerate(lesson.get("steps", [])) if i != index]
        return await self.update_item(lesson_id, {"steps": steps})

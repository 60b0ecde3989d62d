"""
Course store: derived course fields, course statistics and course actions.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import CourseStats
from lms_sync.services.base import CollectionService, DEFAULT_STATUS
from lms_sync.sync.aggregates import count_status, safe_average, tally
from lms_sync.sync.pipeline import to_float, to_int
from lms_sync.sync.store import ResourceStore


def process_course(course: Item) -> Item:
    """Add the numeric and boolean fields the admin screens read."""
    meta = course.get("meta") or {}
    price = to_float(meta.get("_course_price"))
    sale_price = to_float(meta.get("_sale_price"))
    lesson_count = to_int(meta.get("_lesson_count"))
    student_count = to_int(meta.get("_student_count"))

    return {
        **course,
        "lesson_count": lesson_count,
        "student_count": student_count,
        "enrolled_users_count": to_int(meta.get("enrolled_users_count")),
        "price": price,
        "sale_price": sale_price,
        "difficulty": meta.get("_course_difficulty") or "intermediate",
        "category": meta.get("_course_category") or "general",
        "completion_rate": to_int(meta.get("_completion_rate")),
        "duration_hours": to_int(meta.get("_course_duration")),
        "featured": meta.get("_featured") == "yes",
        "on_sale": bool(meta.get("_sale_price")) and sale_price < price,
        "has_lessons": lesson_count > 0,
        "has_students": student_count > 0,
    }


def course_stats(courses: Sequence[Item]) -> CourseStats:
    if not courses:
        return CourseStats()

    by_category: dict[str, int] = {}
    by_difficulty: dict[str, int] = {}
    # Free courses don't count towards the average price
    prices = [c.get("price") or 0 for c in courses if (c.get("price") or 0) > 0]
    total = len(courses)

    for course in courses:
        tally(by_category, course.get("category") or "uncategorized")
        tally(by_difficulty, course.get("difficulty") or "intermediate")

    return CourseStats(
        total=total,
        published=count_status(courses, "publish"),
        draft=count_status(courses, "draft"),
        private=count_status(courses, "private"),
        total_students=sum(c.get("student_count") or 0 for c in courses),
        total_lessons=sum(c.get("lesson_count") or 0 for c in courses),
        average_price=round(safe_average(sum(prices), len(prices))),
        average_duration=round(safe_average(sum(c.get("duration_hours") or 0 for c in courses), total)),
        average_completion_rate=round(
            safe_average(sum(c.get("completion_rate") or 0 for c in courses), total)
        ),
        by_category=by_category,
        by_difficulty=by_difficulty,
        featured_count=sum(1 for c in courses if c.get("featured")),
        on_sale_count=sum(1 for c in courses if c.get("on_sale")),
    )


class CourseStore(ResourceStore):
    """Course list screen state."""

    def __init__(
        self,
        service: CollectionService,
        *,
        search: str = "",
        category: Any = None,
        difficulty: Any = None,
        status: str | None = None,
        **options: Any,
    ):
        initial: Mapping[str, Any] = {
            "search": search,
            "category": category,
            "difficulty": difficulty,
            "status": status or DEFAULT_STATUS,
        }
        super().__init__(
            service,
            "course",
            initial_filters=initial,
            data_processor=process_course,
            aggregate_calculator=course_stats,
            **options,
        )

    async def publish(self, course_id: int) -> Item | None:
        return await self.update_item(course_id, {"status": "publish"})

    async def unpublish(self, course_id: int) -> Item | None:
        return await self.update_item(course_id, {"status": "draft"})

    async def toggle_featured(self, course_id: int, featured: bool) -> Item | None:
        return await self.update_item(course_id, {"featured": featured})

    async def update_price(self, course_id: int, price: float, sale_price: float | None = None) -> Item | None:
        data: dict[str, Any] = {"price": price}
        if sale_price is not None:
            data["sale_price"] = sale_price
        return await self.update_item(course_id, data)

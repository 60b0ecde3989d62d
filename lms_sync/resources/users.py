"""
User store: role management and course enrollment.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from lms_sync.core.exceptions import LmsSyncError
from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import UserStats
from lms_sync.services.base import CollectionService
from lms_sync.services.users import enrolled_course_ids
from lms_sync.sync.aggregates import safe_average, tally
from lms_sync.sync.pipeline import to_int
from lms_sync.sync.store import ResourceStore


RECENT_REGISTRATION_DAYS = 7


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a WordPress date; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def process_user(user: Item) -> Item:
    meta = user.get("meta") or {}
    courses = enrolled_course_ids(meta)
    progress = [to_int(meta.get(f"_course_{course_id}_progress")) for course_id in courses]
    dates = [meta.get(f"_enrolled_course_{course_id}_date") for course_id in courses]

    return {
        **user,
        "primary_role": (user.get("roles") or ["subscriber"])[0],
        "enrolled_courses": courses,
        "is_enrolled": bool(courses),
        "progress": round(safe_average(sum(progress), len(progress))),
        "enrollment_date": max((d for d in dates if d), default=None),
    }


def user_stats(users: Sequence[Item], now: datetime | None = None) -> UserStats:
    if not users:
        return UserStats()

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=RECENT_REGISTRATION_DAYS)
    by_role: dict[str, int] = {}
    for user in users:
        tally(by_role, (user.get("roles") or ["subscriber"])[0])

    enrolled = sum(1 for u in users if u.get("is_enrolled"))
    recent = 0
    for user in users:
        registered = parse_timestamp(user.get("date_registered"))
        if registered and registered > cutoff:
            recent += 1

    return UserStats(
        total_users=len(users),
        users_by_role=by_role,
        enrolled_users=enrolled,
        unenrolled_users=len(users) - enrolled,
        average_progress=round(safe_average(sum(u.get("progress") or 0 for u in users), len(users))),
        recent_registrations=recent,
    )


class UserStore(ResourceStore):
    """User management screen state."""

    def __init__(self, service: CollectionService, *, search: str = "", role: Any = None, **options: Any):
        super().__init__(
            service,
            "user",
            initial_filters={"search": search, "role": role},
            data_processor=process_user,
            aggregate_calculator=user_stats,
            **options,
        )

    async def duplicate_item(self, item_id: Any) -> Item | None:
        raise LmsSyncError("Users cannot be duplicated", error_code="UNSUPPORTED_OPERATION")

    async def update_role(self, user_id: int, role: str) -> Item | None:
        return await self.update_item(user_id, {"roles": [role]})

    async def enroll_in_course(self, user_id: int, course_id: int) -> Item | None:
        enrolled_at = datetime.now(timezone.utc).isoformat()
        meta = {
            f"_enrolled_course_{course_id}": True,
            f"_enrolled_course_{course_id}_date": enrolled_at,
            f"_course_{course_id}_progress": 0,
        }
        return await self.update_item(user_id, {"meta": meta})

    async def unenroll_from_course(self, user_id: int, course_id: int) -> Item | None:
        return await self.update_item(user_id, {"meta": {f"_enrolled_course_{course_id}": None}})

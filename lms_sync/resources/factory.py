"""
Wiring of resource names to their service and store.
"""

from collections.abc import Callable
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.services.base import ResourceService
from lms_sync.services.courses import CourseService
from lms_sync.services.lessons import LessonService
from lms_sync.services.questions import question_service
from lms_sync.services.quizzes import quiz_service
from lms_sync.services.users import UserService
from lms_sync.resources.courses import CourseStore
from lms_sync.resources.lessons import LessonStore
from lms_sync.resources.questions import QuestionStore
from lms_sync.resources.quizzes import QuizStore
from lms_sync.resources.users import UserStore
from lms_sync.sync.store import ResourceStore


RESOURCES: dict[str, tuple[Callable[[WordPressClient], ResourceService], type[ResourceStore]]] = {
    "courses": (CourseService, CourseStore),
    "quizzes": (quiz_service, QuizStore),
    "questions": (question_service, QuestionStore),
    "users": (UserService, UserStore),
    "lessons": (LessonService, LessonStore),
}


def build_store(resource: str, client: WordPressClient, **options: Any) -> ResourceStore:
    """Create the store for ``resource``, taking page size and debounce from settings."""
    if resource not in RESOURCES:
        raise KeyError(f"Unknown resource: {resource}")
    make_service, store_class = RESOURCES[resource]
    options.setdefault("per_page", client.settings.default_per_page)
    options.setdefault("debounce_ms", client.settings.debounce_ms)
    return store_class(make_service(client), **options)

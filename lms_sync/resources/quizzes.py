"""
Quiz store.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from lms_sync.core.exceptions import ResourceNotFoundError
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import QuizStats
from lms_sync.services.base import CollectionService, DEFAULT_STATUS
from lms_sync.sync.aggregates import count_status, safe_average, tally
from lms_sync.sync.pipeline import to_int
from lms_sync.sync.store import ResourceStore


logger = get_logger(__name__)

QUIZ_SETTINGS = (
    "passing_score",
    "time_limit",
    "max_attempts",
    "randomize_questions",
    "show_results",
    "enable_negative_scoring",
)


def process_quiz(quiz: Item) -> Item:
    meta = quiz.get("meta") or {}
    question_ids = meta.get("_quiz_question_ids")
    if not isinstance(question_ids, list):
        question_ids = []
    # The REST-computed _time_limit wins over the raw meta value
    time_limit = to_int(quiz.get("_time_limit") or meta.get("_time_limit"))
    max_attempts = to_int(meta.get("_max_attempts"))
    randomized = meta.get("_randomize_questions") == "yes"

    return {
        **quiz,
        "course_id": meta.get("_course_id") or None,
        "quiz_type": meta.get("_quiz_type") or "standard",
        "difficulty": meta.get("_difficulty_level") or "intermediate",
        "category": meta.get("_quiz_category") or "",
        "passing_score": to_int(meta.get("_passing_score") or 70),
        "time_limit": time_limit,
        "max_attempts": max_attempts,
        "randomize_questions": randomized,
        "show_results": meta.get("_show_results") == "yes",
        "enable_negative_scoring": meta.get("_enable_negative_scoring") == "yes",
        "question_ids": list(question_ids),
        "question_count": len(question_ids),
        "total_points": to_int(meta.get("_total_points")),
        "instructions": meta.get("_quiz_instructions") or "",
        "has_time_limit": time_limit > 0,
        "has_attempt_limit": max_attempts > 0,
        "has_questions": len(question_ids) > 0,
        "is_randomized": randomized,
    }


def quiz_stats(quizzes: Sequence[Item]) -> QuizStats:
    if not quizzes:
        return QuizStats()

    total = len(quizzes)
    total_questions = sum(q.get("question_count") or 0 for q in quizzes)
    total_points = sum(q.get("total_points") or 0 for q in quizzes)
    by_type: dict[str, int] = {}
    by_difficulty: dict[str, int] = {}
    for quiz in quizzes:
        tally(by_type, quiz.get("quiz_type") or "standard")
        tally(by_difficulty, quiz.get("difficulty") or "intermediate")

    return QuizStats(
        total=total,
        published=count_status(quizzes, "publish"),
        draft=count_status(quizzes, "draft"),
        private=count_status(quizzes, "private"),
        total_questions=total_questions,
        average_questions=round(safe_average(total_questions, total)),
        total_points=total_points,
        average_points=round(safe_average(total_points, total)),
        by_type=by_type,
        by_difficulty=by_difficulty,
        with_time_limit=sum(1 for q in quizzes if q.get("has_time_limit")),
        with_attempt_limit=sum(1 for q in quizzes if q.get("has_attempt_limit")),
        randomized=sum(1 for q in quizzes if q.get("is_randomized")),
    )


class QuizStore(ResourceStore):
    """Quiz list screen state plus question assignment helpers."""

    def __init__(
        self,
        service: CollectionService,
        *,
        search: str = "",
        course_id: Any = None,
        quiz_type: Any = None,
        difficulty: Any = None,
        category: Any = None,
        status: str | None = None,
        **options: Any,
    ):
        initial: Mapping[str, Any] = {
            "search": search,
            "course_id": course_id,
            "quiz_type": quiz_type,
            "difficulty": difficulty,
            "category": category,
            "status": status or DEFAULT_STATUS,
        }
        super().__init__(
            service,
            "quiz",
            initial_filters=initial,
            data_processor=process_quiz,
            aggregate_calculator=quiz_stats,
            **options,
        )

    def _require(self, quiz_id: int) -> Item:
        quiz = self.find(quiz_id)
        if quiz is None:
            raise ResourceNotFoundError(f"Quiz {quiz_id} not found")
        return quiz

    async def publish(self, quiz_id: int) -> Item | None:
        return await self.update_item(quiz_id, {"status": "publish"})

    async def unpublish(self, quiz_id: int) -> Item | None:
        return await self.update_item(quiz_id, {"status": "draft"})

    async def add_question(self, quiz_id: int, question_id: int) -> Item | None:
        """Append a question; a question already in the quiz is left alone."""
        quiz = self._require(quiz_id)
        current = list(quiz.get("question_ids") or [])
        if question_id in current:
            logger.debug("question_already_in_quiz", quiz_id=quiz_id, question_id=question_id)
            return quiz
        return await self.update_item(quiz_id, {"question_ids": [*current, question_id]})

    async def remove_question(self, quiz_id: int, question_id: int) -> Item | None:
        quiz = self._require(quiz_id)
        remaining = [qid for qid in quiz.get("question_ids") or [] if qid != question_id]
        return await self.update_item(quiz_id, {"question_ids": remaining})

    async def update_settings(self, quiz_id: int, settings: Mapping[str, Any]) -> Item | None:
        """Update quiz settings; keys outside the known settings are dropped."""
        allowed = {key: value for key, value in settings.items() if key in QUIZ_SETTINGS}
        return await self.update_item(quiz_id, allowed)

    async def reorder_questions(self, quiz_id: int, ordered_ids: Sequence[int]) -> Item | None:
        return await self.update_item(quiz_id, {"question_ids": list(ordered_ids)})

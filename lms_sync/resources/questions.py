"""
Question store.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from lms_sync.core.exceptions import ResourceNotFoundError, ValidationError
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import QuestionStats
from lms_sync.services.base import CollectionService, DEFAULT_STATUS
from lms_sync.sync.aggregates import count_status, safe_average, tally
from lms_sync.sync.pipeline import to_int
from lms_sync.sync.store import ResourceStore


logger = get_logger(__name__)


def process_question(question: Item) -> Item:
    meta = question.get("meta") or {}
    question_type = meta.get("_question_type") or "multiple_choice"
    options = meta.get("_question_options")
    if not isinstance(options, list):
        options = []
    time_limit = to_int(meta.get("_time_limit"))
    provider = meta.get("_provider") or "custom"

    return {
        **question,
        "quiz_id": meta.get("_quiz_id") or None,
        "question_type": question_type,
        "difficulty": meta.get("_difficulty_level") or "intermediate",
        "category": meta.get("_question_category") or "",
        "points": to_int(meta.get("_points") or 1),
        "time_limit": time_limit,
        "options": list(options),
        "correct_answer": meta.get("_correct_answer") or "",
        "explanation": meta.get("_explanation") or "",
        "question_order": to_int(meta.get("_question_order")),
        "provider": provider,
        "has_options": len(options) > 0,
        "has_explanation": bool(meta.get("_explanation")),
        "has_time_limit": time_limit > 0,
        "is_multiple_choice": question_type == "multiple_choice",
        "is_true_false": question_type == "true_false",
        "is_short_answer": question_type == "short_answer",
        "is_essay": question_type == "essay",
        "is_ai_generated": provider == "ai",
        "is_imported": provider == "imported",
    }


def question_stats(questions: Sequence[Item]) -> QuestionStats:
    if not questions:
        return QuestionStats()

    total = len(questions)
    total_points = sum(q.get("points") or 0 for q in questions)
    by_type: dict[str, int] = {}
    by_difficulty: dict[str, int] = {}
    by_provider: dict[str, int] = {}
    for question in questions:
        tally(by_type, question.get("question_type") or "multiple_choice")
        tally(by_difficulty, question.get("difficulty") or "intermediate")
        tally(by_provider, question.get("provider") or "custom")

    def flagged(flag: str) -> int:
        return sum(1 for q in questions if q.get(flag))

    return QuestionStats(
        total=total,
        published=count_status(questions, "publish"),
        draft=count_status(questions, "draft"),
        private=count_status(questions, "private"),
        total_points=total_points,
        average_points=round(safe_average(total_points, total), 1),
        by_type=by_type,
        by_difficulty=by_difficulty,
        by_provider=by_provider,
        with_explanation=flagged("has_explanation"),
        with_time_limit=flagged("has_time_limit"),
        multiple_choice_questions=flagged("is_multiple_choice"),
        true_false_questions=flagged("is_true_false"),
        short_answer_questions=flagged("is_short_answer"),
        essay_questions=flagged("is_essay"),
    )


class QuestionStore(ResourceStore):
    """Question bank screen state."""

    def __init__(
        self,
        service: CollectionService,
        *,
        search: str = "",
        quiz_id: Any = None,
        type: Any = None,
        difficulty: Any = None,
        category: Any = None,
        provider: Any = None,
        status: str | None = None,
        **options: Any,
    ):
        initial: Mapping[str, Any] = {
            "search": search,
            "quiz_id": quiz_id,
            "type": type,
            "difficulty": difficulty,
            "category": category,
            "provider": provider,
            "status": status or DEFAULT_STATUS,
        }
        super().__init__(
            service,
            "question",
            initial_filters=initial,
            data_processor=process_question,
            aggregate_calculator=question_stats,
            **options,
        )

    def _require(self, question_id: int) -> Item:
        question = self.find(question_id)
        if question is None:
            raise ResourceNotFoundError(f"Question {question_id} not found")
        return question

    def duplicate_payload(self, source: Item) -> dict[str, Any]:
        # Processed records carry ``question_type``; the service writes ``type``
        payload = super().duplicate_payload(source)
        payload["type"] = payload.pop("question_type", None) or "multiple_choice"
        return payload

    async def publish(self, question_id: int) -> Item | None:
        return await self.update_item(question_id, {"status": "publish"})

    async def unpublish(self, question_id: int) -> Item | None:
        return await self.update_item(question_id, {"status": "draft"})

    async def update_order(self, question_id: int, order: int) -> Item | None:
        return await self.update_item(question_id, {"question_order": order})

    async def update_type(self, question_id: int, question_type: str) -> Item | None:
        return await self.update_item(question_id, {"type": question_type})

    async def add_option(self, question_id: int, option: Any) -> Item | None:
        question = self._require(question_id)
        return await self.update_item(question_id, {"options": [*question.get("options", []), option]})

    async def remove_option(self, question_id: int, index: int) -> Item | None:
        question = self._require(question_id)
        options = [opt for i, opt in enumerate(question.get("options", [])) if i != index]
        return await self.update_item(question_id, {"options": options})

    async def update_correct_answer(self, question_id: int, answer: Any) -> Item | None:
        return await self.update_item(question_id, {"correct_answer": answer})

    async def update_explanation(self, question_id: int, explanation: str) -> Item | None:
        return await self.update_item(question_id, {"explanation": explanation})

    async def bulk_create(self, questions: Sequence[Mapping[str, Any]]) -> dict[str, list]:
        """
        Create several questions one after another, then refresh the list.

        Returns:
            ``{"successful": [...], "failed": [{"data": ..., "error": ...}]}``

        Raises:
            ValidationError: If ``questions`` is empty
        """
        if not questions:
            raise ValidationError(["Invalid questions data array"], self.resource_name)

        logger.info("bulk_create_started", resource=self.resource_name, count=len(questions))
        results: dict[str, list] = {"successful": [], "failed": []}
        for data in questions:
            try:
                results["successful"].append(await self.create_item(data))
            except Exception as e:
                results["failed"].append({"data": data, "error": str(e)})

        logger.info(
            "bulk_create_completed",
            resource=self.resource_name,
            successful=len(results["successful"]),
            failed=len(results["failed"]),
        )
        await self.refresh()
        return results

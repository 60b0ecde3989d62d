"""
Quiz collection service.
"""

from collections.abc import Mapping
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.schemas.core import Item
from lms_sync.services.base import MetaQuery, QueryParams, ResourceService, build_query_params, rendered


QUIZ_META_FIELDS = {
    "course_id": "_course_id",
    "quiz_type": "_quiz_type",
    "difficulty": "_difficulty_level",
    "category": "_quiz_category",
    "passing_score": "_passing_score",
    "time_limit": "_time_limit",
    "max_attempts": "_max_attempts",
    "question_ids": "_quiz_question_ids",
    "instructions": "_quiz_instructions",
}

QUIZ_FLAG_FIELDS = {
    "randomize_questions": "_randomize_questions",
    "show_results": "_show_results",
    "enable_negative_scoring": "_enable_negative_scoring",
}


def sanitize_quiz(quiz: Mapping[str, Any]) -> Item:
    meta = dict(quiz.get("meta") or {})
    question_ids = meta.get("_quiz_question_ids")
    return {
        "id": quiz.get("id"),
        "title": rendered(quiz.get("title")),
        "content": rendered(quiz.get("content")),
        "excerpt": rendered(quiz.get("excerpt")),
        "status": quiz.get("status") or "draft",
        "date": quiz.get("date"),
        "modified": quiz.get("modified"),
        "author": quiz.get("author"),
        "meta": meta,
        # REST-computed field, preferred over the meta copy
        "_time_limit": quiz.get("_time_limit"),
        "question_count": len(question_ids) if isinstance(question_ids, list) else 0,
    }


def _check_int(data: Mapping[str, Any], key: str, low: int, high: int | None, message: str) -> str | None:
    if key not in data or data[key] in (None, ""):
        return None
    try:
        value = int(data[key])
    except (TypeError, ValueError):
        return message
    if value < low or (high is not None and value > high):
        return message
    return None


def validate_quiz(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    errors = []

    if not partial or "title" in data:
        if not str(data.get("title") or "").strip():
            errors.append("Title is required")

    checks = [
        ("passing_score", 0, 100, "Passing score must be between 0 and 100"),
        ("time_limit", 0, None, "Time limit must be a positive number"),
        ("max_attempts", 0, None, "Max attempts must be a positive number"),
    ]
    for key, low, high, message in checks:
        problem = _check_int(data, key, low, high, message)
        if problem:
            errors.append(problem)

    return errors


def transform_quiz(data: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in ("title", "status"):
        if key in data:
            payload[key] = data[key]
    if "content" in data or "instructions" in data:
        payload["content"] = data.get("instructions") or data.get("content") or ""

    meta = {meta_key: data[key] for key, meta_key in QUIZ_META_FIELDS.items() if key in data}
    meta.update(
        {meta_key: "yes" if data[key] else "no" for key, meta_key in QUIZ_FLAG_FIELDS.items() if key in data}
    )
    if meta:
        payload["meta"] = meta
    return payload


def build_quiz_params(options: Mapping[str, Any]) -> QueryParams:
    params = build_query_params(options)
    meta_query = MetaQuery(params)

    if options.get("course_id"):
        meta_query.add_numeric_id("_course_id", options["course_id"])
    if options.get("quiz_type"):
        meta_query.add("_quiz_type", options["quiz_type"])
    if options.get("difficulty"):
        meta_query.add("_difficulty_level", options["difficulty"])
    if options.get("category"):
        meta_query.add("_quiz_category", options["category"])

    return params


def quiz_service(client: WordPressClient) -> ResourceService:
    """Quizzes have no server-side duplicate; stores fall back to copy-and-create."""
    return ResourceService(
        client,
        "quiz",
        "quizzes",
        sanitizer=sanitize_quiz,
        validator=validate_quiz,
        transformer=transform_quiz,
        build_params=build_quiz_params,
    )

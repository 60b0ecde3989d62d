"""
Question collection service.
"""

from collections.abc import Mapping
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.schemas.core import Item
from lms_sync.services.base import MetaQuery, QueryParams, ResourceService, build_query_params, rendered


QUESTION_TYPES = ["multiple_choice", "true_false", "short_answer", "essay"]

QUESTION_META_FIELDS = {
    "quiz_id": "_quiz_id",
    "type": "_question_type",
    "difficulty": "_difficulty_level",
    "category": "_question_category",
    "points": "_points",
    "time_limit": "_time_limit",
    "options": "_question_options",
    "correct_answer": "_correct_answer",
    "explanation": "_explanation",
    "question_order": "_question_order",
    "provider": "_provider",
}


def sanitize_question(question: Mapping[str, Any]) -> Item:
    return {
        "id": question.get("id"),
        "title": rendered(question.get("title")),
        "content": rendered(question.get("content")),
        "status": question.get("status") or "draft",
        "date": question.get("date"),
        "modified": question.get("modified"),
        "author": question.get("author"),
        "meta": dict(question.get("meta") or {}),
    }


def validate_question(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    errors = []

    if not partial or "title" in data:
        if not str(data.get("title") or "").strip():
            errors.append("Question title is required")

    if data.get("type") and data["type"] not in QUESTION_TYPES:
        errors.append(f"Invalid question type. Must be one of: {', '.join(QUESTION_TYPES)}")

    if data.get("points") not in (None, ""):
        try:
            if int(data["points"]) < 0:
                errors.append("Points must be a positive number")
        except (TypeError, ValueError):
            errors.append("Points must be a positive number")

    if "options" in data and not isinstance(data["options"], list):
        errors.append("Options must be a list")

    return errors


def transform_question(data: Mapping[str, Any]) -> dict[str, Any]:
    payload = {key: data[key] for key in ("title", "content", "status") if key in data}
    meta = {meta_key: data[key] for key, meta_key in QUESTION_META_FIELDS.items() if key in data}
    if meta:
        payload["meta"] = meta
    return payload


def build_question_params(options: Mapping[str, Any]) -> QueryParams:
    params = build_query_params(options)
    meta_query = MetaQuery(params)

    if options.get("quiz_id"):
        meta_query.add_numeric_id("_quiz_id", options["quiz_id"])
    for key, meta_key in (
        ("type", "_question_type"),
        ("difficulty", "_difficulty_level"),
        ("category", "_question_category"),
        ("provider", "_provider"),
    ):
        if options.get(key):
            meta_query.add(meta_key, options[key])

    return params


def question_service(client: WordPressClient) -> ResourceService:
    return ResourceService(
        client,
        "question",
        "questions",
        sanitizer=sanitize_question,
        validator=validate_question,
        transformer=transform_question,
        build_params=build_question_params,
    )

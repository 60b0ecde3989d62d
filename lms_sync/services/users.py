"""
User collection service.
"""

import re
from collections.abc import Mapping
from typing import Any

from lms_sync.core.api_client import WordPressClient
from lms_sync.core.exceptions import ResourceNotFoundError
from lms_sync.schemas.core import Item
from lms_sync.services.base import QueryParams, ResourceService


ENROLLMENT_META = re.compile(r"^_enrolled_course_(\d+)$")
WRITABLE_USER_FIELDS = ("name", "first_name", "last_name", "email", "url", "description", "roles", "meta")


def enrolled_course_ids(meta: Mapping[str, Any]) -> list[int]:
    """Course ids the user is enrolled in, read from ``_enrolled_course_{id}`` meta."""
    ids = []
    for key, value in meta.items():
        match = ENROLLMENT_META.match(key)
        if match and value not in (None, "", False, "0", 0):
            ids.append(int(match.group(1)))
    return sorted(ids)


def sanitize_user(user: Mapping[str, Any]) -> Item:
    first_name = user.get("first_name") or ""
    last_name = user.get("last_name") or ""
    username = user.get("username") or user.get("slug") or ""
    return {
        "id": user.get("id"),
        "name": user.get("name") or f"{first_name} {last_name}".strip() or username,
        "username": username,
        "email": user.get("email") or "",
        "roles": list(user.get("roles") or ["subscriber"]),
        "avatar_urls": dict(user.get("avatar_urls") or {}),
        "date_registered": user.get("registered_date") or user.get("registered"),
        "first_name": first_name,
        "last_name": last_name,
        "description": user.get("description") or "",
        "url": user.get("url") or "",
        "meta": dict(user.get("meta") or {}),
    }


def validate_user(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    errors = []
    if not partial:
        if not str(data.get("username") or "").strip():
            errors.append("Username is required")
        if not str(data.get("email") or "").strip():
            errors.append("Email is required")
    if data.get("email") and "@" not in str(data["email"]):
        errors.append("Email address is invalid")
    if "roles" in data and not (isinstance(data["roles"], list) and data["roles"]):
        errors.append("Roles must be a non-empty list")
    return errors


def transform_user(data: Mapping[str, Any]) -> dict[str, Any]:
    payload = {key: data[key] for key in WRITABLE_USER_FIELDS if key in data}
    for key in ("username", "password"):
        if key in data:
            payload[key] = data[key]
    return payload


def build_user_params(options: Mapping[str, Any]) -> QueryParams:
    params: QueryParams = [
        ("page", str(options.get("page", 1))),
        ("per_page", str(options.get("per_page", 20))),
        ("orderby", str(options.get("order_by") or "registered_date")),
        ("order", str(options.get("order") or "desc")),
        ("context", "edit"),
    ]
    search = str(options.get("search") or "").strip()
    if search:
        params.append(("search", search))
    if options.get("role"):
        params.append(("roles", str(options["role"])))
    return params


class UserService(ResourceService):
    """WordPress users; deleting always forces and may reassign content."""

    def __init__(self, client: WordPressClient):
        super().__init__(
            client,
            "user",
            "users",
            sanitizer=sanitize_user,
            validator=validate_user,
            transformer=transform_user,
            build_params=build_user_params,
        )

    async def get_one(self, item_id: int, embed: bool = False) -> Item | None:
        self._check_id(item_id)
        try:
            response = await self.client.get(f"{self.endpoint}/{item_id}", params={"context": "edit"})
        except ResourceNotFoundError:
            return None
        return self.sanitizer(response.data)

    async def delete(self, item_id: int, **options: Any) -> bool:
        self._check_id(item_id)
        params = {"force": "true"}
        if options.get("reassign"):
            params["reassign"] = str(options["reassign"])
        await self.client.delete(f"{self.endpoint}/{item_id}", params=params)
        return True

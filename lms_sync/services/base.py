"""
Collection service contract and its generic WordPress REST implementation.
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from lms_sync.core.api_client import WordPressClient, extract_pagination
from lms_sync.core.exceptions import ResourceNotFoundError, ValidationError
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item, ListResult


logger = get_logger(__name__)

DEFAULT_STATUS = "publish,draft,private"

QueryParams = list[tuple[str, str]]
Sanitizer = Callable[[Mapping[str, Any]], Item]
Validator = Callable[[Mapping[str, Any], bool], list[str]]
Transformer = Callable[[Mapping[str, Any]], dict[str, Any]]
ParamsBuilder = Callable[[Mapping[str, Any]], QueryParams]


@runtime_checkable
class CollectionService(Protocol):
    """What a ResourceStore needs from a remote collection."""

    async def get_all(self, params: Mapping[str, Any]) -> ListResult: ...

    async def get_one(self, item_id: int) -> Item | None: ...

    async def create(self, data: Mapping[str, Any]) -> Item: ...

    async def update(self, item_id: int, data: Mapping[str, Any]) -> Item: ...

    async def delete(self, item_id: int, **options: Any) -> bool: ...


@runtime_checkable
class SupportsDuplicate(Protocol):
    """Services with a dedicated server-side duplicate operation."""

    async def duplicate(self, item_id: int) -> Item: ...


def rendered(value: Any) -> str:
    """Unwrap WordPress ``{"rendered": ...}`` fields."""
    if isinstance(value, Mapping):
        return value.get("rendered") or value.get("raw") or ""
    return value or ""


def build_query_params(options: Mapping[str, Any]) -> QueryParams:
    """Default list query: paging, status, ordering, embedding and search."""
    params: QueryParams = [
        ("page", str(options.get("page", 1))),
        ("per_page", str(options.get("per_page", 20))),
        ("status", str(options.get("status") or DEFAULT_STATUS)),
        ("orderby", str(options.get("order_by", "date"))),
        ("order", str(options.get("order", "desc"))),
    ]

    if options.get("embed", True):
        params.append(("_embed", "true"))

    search = str(options.get("search") or "").strip()
    if search:
        params.append(("search", search))

    return params


class MetaQuery:
    """Accumulates indexed ``meta_query[n][...]`` parameters."""

    def __init__(self, params: QueryParams):
        self.params = params
        self.index = 0

    def add(self, key: str, value: Any, compare: str = "=", value_type: str | None = None) -> None:
        prefix = f"meta_query[{self.index}]"
        self.params.append((f"{prefix}[key]", key))
        self.params.append((f"{prefix}[value]", str(value)))
        self.params.append((f"{prefix}[compare]", compare))
        if value_type:
            self.params.append((f"{prefix}[type]", value_type))
        self.index += 1

    def add_numeric_id(self, key: str, value: Any) -> None:
        """Add an ``=`` NUMERIC clause when ``value`` is a positive integer."""
        try:
            numeric = int(value)
        except (TypeError, ValueError):
            return
        if numeric > 0:
            self.add(key, numeric, value_type="NUMERIC")


def _identity(data: Mapping[str, Any]) -> dict[str, Any]:
    return dict(data)


def _always_valid(data: Mapping[str, Any], partial: bool = False) -> list[str]:
    return []


class ResourceService:
    """CRUD operations for one WordPress REST collection."""

    def __init__(
        self,
        client: WordPressClient,
        resource_name: str,
        endpoint_key: str,
        *,
        sanitizer: Sanitizer = _identity,
        validator: Validator = _always_valid,
        transformer: Transformer = _identity,
        build_params: ParamsBuilder = build_query_params,
    ):
        self.client = client
        self.resource_name = resource_name
        self.endpoint_key = endpoint_key
        self.sanitizer = sanitizer
        self.validator = validator
        self.transformer = transformer
        self.build_params = build_params

    @property
    def endpoint(self) -> str:
        return self.client.endpoint(self.endpoint_key)

    def _check_id(self, item_id: Any) -> None:
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id <= 0:
            raise ValidationError([f"Invalid {self.resource_name} ID: {item_id}"], self.resource_name)

    def _validate(self, data: Mapping[str, Any], partial: bool = False) -> None:
        # Updates are partial: required-field checks only apply on create
        errors = self.validator(data, partial)
        if errors:
            raise ValidationError(errors, self.resource_name)

    async def get_all(self, params: Mapping[str, Any]) -> ListResult:
        """
        Get one page of the collection.

        Args:
            params: Cleaned filters plus ``page`` and ``per_page``

        Returns:
            Sanitized items and the pagination envelope read from headers
        """
        page = int(params.get("page", 1))
        per_page = int(params.get("per_page", 20))
        query = self.build_params({**params, "page": page, "per_page": per_page})

        logger.debug("service_get_all", resource=self.resource_name, page=page, per_page=per_page)
        response = await self.client.get(self.endpoint, params=query)

        items = response.data if isinstance(response.data, list) else []
        return ListResult(
            data=[self.sanitizer(item) for item in items],
            pagination=extract_pagination(response.headers, page, per_page),
        )

    async def get_one(self, item_id: int, embed: bool = True) -> Item | None:
        """Get a single record, or None when the server answers 404."""
        self._check_id(item_id)
        params = {"_embed": "true"} if embed else None
        try:
            response = await self.client.get(f"{self.endpoint}/{item_id}", params=params)
        except ResourceNotFoundError:
            logger.warning("service_get_one_missing", resource=self.resource_name, id=item_id)
            return None
        return self.sanitizer(response.data)

    async def create(self, data: Mapping[str, Any]) -> Item:
        self._validate(data)
        response = await self.client.post(self.endpoint, json=self.transformer(data))
        created = self.sanitizer(response.data)
        logger.info("service_created", resource=self.resource_name, id=created.get("id"))
        return created

    async def update(self, item_id: int, data: Mapping[str, Any]) -> Item:
        self._check_id(item_id)
        self._validate(data, partial=True)
        response = await self.client.post(f"{self.endpoint}/{item_id}", json=self.transformer(data))
        logger.info("service_updated", resource=self.resource_name, id=item_id)
        return self.sanitizer(response.data)

    async def delete(self, item_id: int, **options: Any) -> bool:
        self._check_id(item_id)
        params = {"force": "true"} if options.get("force") else None
        await self.client.delete(f"{self.endpoint}/{item_id}", params=params)
        logger.info("service_deleted", resource=self.resource_name, id=item_id)
        return True

    async def get_count(self, params: Mapping[str, Any] | None = None) -> int:
        """Total matching records, read from a one-item page."""
        result = await self.get_all({**(params or {}), "page": 1, "per_page": 1})
        return result.pagination.total

    async def exists(self, item_id: int) -> bool:
        return await self.get_one(item_id, embed=False) is not None

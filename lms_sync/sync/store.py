"""
Generic client-side cache for one remote collection.

A ResourceStore fetches paginated pages through a CollectionService,
coalesces filter changes, suppresses repeated fetches and applies
create/update/delete/duplicate results to its local item list.
"""

import asyncio
from collections.abc import Coroutine, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from lms_sync.core.exceptions import ResourceNotFoundError, error_message
from lms_sync.core.logging import get_logger
from lms_sync.schemas.core import Item, Pagination
from lms_sync.services.base import CollectionService, SupportsDuplicate, rendered
from lms_sync.sync.aggregates import AggregateCalculator, MemoizedAggregate, status_stats
from lms_sync.sync.debounce import Debouncer
from lms_sync.sync.fingerprint import FingerprintGate, fingerprint
from lms_sync.sync.pipeline import DataProcessor, clean_filters, merge_page, process_items


logger = get_logger(__name__)

DUPLICATE_STRIPPED_FIELDS = ("id", "date", "date_gmt", "modified", "modified_gmt")


class StoreState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"


def build_duplicate_payload(source: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a local record ready to be sent to ``create``."""
    payload = {key: value for key, value in source.items() if key not in DUPLICATE_STRIPPED_FIELDS}
    payload["title"] = f"{rendered(source.get('title')) or 'Untitled'} (Copy)"
    payload["status"] = "draft"
    return payload


class ResourceStore:
    """
    In-memory state for one collection screen.

    State (``items``, ``pagination``, ``filters``, ``error`` and the
    ``creating``/``updating``/``deleting`` flags) is private to the instance.
    All methods must be called from the event loop that owns the store.
    """

    def __init__(
        self,
        service: CollectionService,
        resource_name: str = "resource",
        *,
        initial_filters: Mapping[str, Any] | None = None,
        debounce_ms: int = 500,
        auto_fetch: bool = True,
        per_page: int = 20,
        data_processor: DataProcessor | None = None,
        aggregate_calculator: AggregateCalculator | None = None,
        discard_stale: bool = False,
    ):
        """
        Args:
            service: Remote collection the store reads and writes
            resource_name: Singular name used in logs and error messages
            initial_filters: Filters applied on mount and by ``reset_filters``
            debounce_ms: Quiet period before a filter change triggers a fetch
            auto_fetch: Fetch page 1 immediately on ``mount``
            per_page: Page size requested from the service
            data_processor: Adds derived fields to every fetched record
            aggregate_calculator: Derives ``computed`` from the item list
            discard_stale: Drop list responses older than the last one applied
        """
        self.service = service
        self.resource_name = resource_name
        self.auto_fetch = auto_fetch
        self.data_processor = data_processor
        self.discard_stale = discard_stale

        self._initial_filters: dict[str, Any] = {"search": "", **(initial_filters or {})}
        self.filters: dict[str, Any] = dict(self._initial_filters)

        self.items: list[Item] = []
        self.pagination = Pagination.empty(per_page)
        self.error: str | None = None
        self.creating = False
        self.updating = False
        self.deleting = False

        self._gate = FingerprintGate()
        self._debouncer = Debouncer(debounce_ms)
        self._aggregate = MemoizedAggregate(aggregate_calculator or status_stats)
        self._mounted = True
        self._tasks: set[asyncio.Task] = set()
        self._in_flight = 0
        self._sequence = 0
        self._applied_sequence = 0

    # -- derived state -----------------------------------------------------

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more

    @property
    def state(self) -> StoreState:
        if self._in_flight:
            return StoreState.FETCHING
        if self._debouncer.pending:
            return StoreState.DEBOUNCING
        return StoreState.IDLE

    @property
    def computed(self) -> BaseModel:
        """Aggregate statistics, recomputed only when ``items`` is replaced."""
        return self._aggregate.get(self.items)

    def find(self, item_id: Any) -> Item | None:
        return next((item for item in self.items if item.get("id") == item_id), None)

    # -- lifecycle ---------------------------------------------------------

    async def mount(self) -> None:
        """Start the store; the first fetch is immediate, not debounced."""
        self._mounted = True
        if self.auto_fetch:
            await self._run(self._fetch(reset=True, overrides={}))

    async def unmount(self) -> None:
        """Cancel the pending debounce timer and every in-flight list fetch."""
        self._mounted = False
        self._debouncer.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("store_unmounted", resource=self.resource_name, cancelled=len(tasks))

    async def __aenter__(self) -> "ResourceStore":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.unmount()

    async def wait_idle(self) -> None:
        """Wait until every list fetch started so far has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, bool]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, bool]) -> bool:
        # Cancelling the task on unmount must not cancel the awaiting caller
        task = self._spawn(coro)
        await asyncio.wait({task})
        return not task.cancelled() and task.result()

    # -- filters -----------------------------------------------------------

    def update_filter(self, key: str, value: Any) -> None:
        self.set_filters({**self.filters, key: value})

    def set_filters(self, filters: Mapping[str, Any]) -> None:
        """Replace the filter map and schedule a debounced reset fetch."""
        new_filters = dict(filters)
        if new_filters == self.filters:
            return
        self.filters = new_filters
        self._schedule_reset()

    def reset_filters(self) -> None:
        self.set_filters(self._initial_filters)

    def _schedule_reset(self) -> None:
        if not self._mounted:
            return
        self._debouncer.schedule(self._on_debounce_fire)

    def _on_debounce_fire(self) -> None:
        if self._mounted:
            # Filters are read when the fetch starts, not when it was scheduled
            self._spawn(self._fetch(reset=True, overrides={}))

    # -- reads -------------------------------------------------------------

    async def fetch_items(self, reset: bool = False, **overrides: Any) -> bool:
        """
        Fetch the current page (or page 1 when ``reset``).

        Returns:
            True if a request was dispatched, False if it was suppressed
        """
        return await self._run(self._fetch(reset=reset, overrides=overrides))

    async def load_more(self) -> bool:
        """Append the next page; a no-op unless idle with ``has_more``."""
        if not self._mounted or not self.pagination.has_more or self.state is not StoreState.IDLE:
            return False
        self.pagination = self.pagination.model_copy(
            update={"current_page": self.pagination.current_page + 1}
        )
        return await self._run(self._fetch(reset=False, overrides={}))

    async def refresh(self) -> bool:
        """Refetch page 1 even if it repeats the last request."""
        self._gate.clear()
        return await self._run(self._fetch(reset=True, overrides={}))

    async def _fetch(self, reset: bool, overrides: Mapping[str, Any]) -> bool:
        if not self._mounted:
            return False

        active_filters = {**self.filters, **overrides}
        page = 1 if reset else self.pagination.current_page
        fp = fingerprint(reset, active_filters, page)
        if not self._gate.admit(fp):
            logger.debug("fetch_skipped_duplicate", resource=self.resource_name, page=page)
            return False

        self._sequence += 1
        sequence = self._sequence
        self._in_flight += 1
        self.error = None

        per_page = self.pagination.per_page
        params = {**clean_filters(active_filters), "page": page, "per_page": per_page}
        logger.info("fetch_started", resource=self.resource_name, page=page, reset=reset)

        try:
            result = await self.service.get_all(params)
            processed = process_items(result.data, self.data_processor)
        except asyncio.CancelledError:
            # A remount must be able to issue the same request again
            if self._gate.last == fp:
                self._gate.clear()
            logger.debug("fetch_cancelled", resource=self.resource_name, page=page)
            raise
        except Exception as e:
            # Let an identical retry through once this request has failed
            if self._gate.last == fp:
                self._gate.clear()
            if self._accepts(sequence):
                self._apply_fetch_failure(e, first_page=reset or page == 1, page=page)
                self._applied_sequence = sequence
            logger.error("fetch_failed", resource=self.resource_name, page=page, error=str(e))
            return True
        finally:
            self._in_flight -= 1

        if not self._accepts(sequence):
            logger.debug("fetch_discarded", resource=self.resource_name, page=page)
            return True

        self.items = merge_page(self.items, processed, replace=reset or page == 1)
        self.pagination = Pagination.from_meta(result.pagination, page, per_page)
        self._applied_sequence = sequence

        logger.info(
            "fetch_succeeded",
            resource=self.resource_name,
            page=page,
            count=len(processed),
            total=self.pagination.total,
        )
        return True

    def _accepts(self, sequence: int) -> bool:
        if not self._mounted:
            return False
        return not (self.discard_stale and sequence < self._applied_sequence)

    def _apply_fetch_failure(self, error: Exception, first_page: bool, page: int) -> None:
        self.error = error_message(error, f"Failed to fetch {self.resource_name}s")
        if first_page:
            self.items = []
            self.pagination = Pagination.empty(self.pagination.per_page)
        else:
            # Step back so load_more() can retry the page that failed
            self.pagination = self.pagination.model_copy(update={"current_page": max(1, page - 1)})

    # -- writes ------------------------------------------------------------

    async def _reconcile(self, record: Item) -> Item:
        """Re-read the canonical record and run it through the processor."""
        item_id = record.get("id")
        canonical = await self.service.get_one(item_id) if item_id else None
        full = canonical if canonical is not None else record
        return self.data_processor(full) if self.data_processor else full

    def _record_failure(self, action: str, error: Exception, item_id: Any = None) -> None:
        if self._mounted:
            self.error = error_message(error, f"Failed to {action} {self.resource_name}")
        logger.error(
            f"{action}_failed", resource=self.resource_name, id=item_id, error=str(error)
        )

    def _prepend(self, item: Item) -> None:
        self.items = [item, *self.items]
        self.pagination = self.pagination.model_copy(update={"total": self.pagination.total + 1})

    async def create_item(self, data: Mapping[str, Any]) -> Item | None:
        """
        Create a record, re-fetch it and put it first in the list.

        Returns:
            The processed record, or None if the store unmounted meanwhile

        Raises:
            Whatever the service raised; local state is left untouched
        """
        self.creating = True
        self.error = None
        try:
            created = await self.service.create(data)
            if not self._mounted:
                return None
            processed = await self._reconcile(created)
            if not self._mounted:
                return None
            self._prepend(processed)
            logger.info("create_succeeded", resource=self.resource_name, id=processed.get("id"))
            return processed
        except Exception as e:
            self._record_failure("create", e)
            raise
        finally:
            self.creating = False

    async def update_item(self, item_id: Any, data: Mapping[str, Any]) -> Item | None:
        """Update a record and replace the local copy with the re-fetched one."""
        self.updating = True
        self.error = None
        try:
            updated = await self.service.update(item_id, data)
            canonical = await self.service.get_one(item_id)
            full = canonical if canonical is not None else updated
            processed = self.data_processor(full) if self.data_processor else full
            if not self._mounted:
                return None
            self.items = [processed if item.get("id") == item_id else item for item in self.items]
            logger.info("update_succeeded", resource=self.resource_name, id=item_id)
            return processed
        except Exception as e:
            self._record_failure("update", e, item_id)
            raise
        finally:
            self.updating = False

    async def delete_item(self, item_id: Any, **options: Any) -> None:
        """Delete a record remotely, then drop it locally."""
        self.deleting = True
        self.error = None
        try:
            await self.service.delete(item_id, **options)
            if not self._mounted:
                return
            self.items = [item for item in self.items if item.get("id") != item_id]
            self.pagination = self.pagination.model_copy(
                update={"total": max(0, self.pagination.total - 1)}
            )
            logger.info("delete_succeeded", resource=self.resource_name, id=item_id)
        except Exception as e:
            self._record_failure("delete", e, item_id)
            raise
        finally:
            self.deleting = False

    def duplicate_payload(self, source: Item) -> dict[str, Any]:
        """Create data for a copy of ``source``, used when the service cannot duplicate."""
        return build_duplicate_payload(source)

    async def duplicate_item(self, item_id: Any) -> Item | None:
        """
        Duplicate a record present in the local list.

        Uses the service's own ``duplicate`` when it has one, otherwise
        creates a draft copy of the local record.
        """
        self.creating = True
        self.error = None
        try:
            source = self.find(item_id)
            if source is None:
                raise ResourceNotFoundError(f"{self.resource_name} {item_id} not found")

            if isinstance(self.service, SupportsDuplicate):
                duplicated = await self.service.duplicate(item_id)
            else:
                duplicated = await self.service.create(self.duplicate_payload(source))

            processed = await self._reconcile(duplicated)
            if not self._mounted:
                return None
            self._prepend(processed)
            logger.info(
                "duplicate_succeeded",
                resource=self.resource_name,
                source_id=item_id,
                id=processed.get("id"),
            )
            return processed
        except Exception as e:
            self._record_failure("duplicate", e, item_id)
            raise
        finally:
            self.creating = False

"""Swipe/paging navigation controller — the prayer detail view.

Learn: The user pages through an ordered list of prayer ids one record at a
time. The controller holds the cursor and decides what each gesture does:

    idle ──swipe < threshold──────────────► idle           SNAPPED_BACK
    idle ──swipe past either end──────────► idle           BOUNCED (damped)
    idle ──swipe/next/prev, cache hit─────► idle           MOVED
    idle ──swipe/next/prev, cache miss────► loading ─ok──► transitioning ► idle
                                                   └─err/timeout──► idle + close

Input that arrives while loading or transitioning is REJECTED, not queued.
The cursor only moves once the target record is in hand, so a failed fetch
leaves the user exactly where they were (and the view is closed).

index == -1 is the deep-link sentinel: the record was opened directly, not
from the list, so previous/next are unavailable and only close works.

Swipe direction: dx < 0 (finger moves left) goes to the next record.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from prayoverus.client.api import ApiError, NetworkError
from prayoverus.client.cache import RecordCache
from prayoverus.client.slot import InFlightSlot
from prayoverus.config import client_settings

logger = structlog.get_logger()

NOT_IN_LIST = -1

Fetcher = Callable[[Any], Awaitable[Optional[dict]]]


class PagingState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    TRANSITIONING = "transitioning"


class NavOutcome(str, enum.Enum):
    LOADED = "loaded"
    MOVED = "moved"
    SNAPPED_BACK = "snapped_back"
    BOUNCED = "bounced"
    REJECTED = "rejected"
    NOT_IN_LIST = "not_in_list"
    FAILED = "failed"


@dataclass
class NavResult:
    outcome: NavOutcome
    index: int
    record: Optional[dict] = None
    from_cache: bool = False
    offset: float = 0.0  # visual offset for bounce feedback
    error: Optional[str] = None


class PagingController:
    """Cursor + cache + single in-flight navigation for one detail view."""

    def __init__(
        self,
        fetch: Fetcher,
        id_list: Sequence[Any],
        index: int = 0,
        *,
        current_id: Any = None,
        cache: Optional[RecordCache] = None,
        fetch_timeout: Optional[float] = None,
        swipe_threshold: Optional[float] = None,
        edge_resistance: Optional[float] = None,
        settle_delay: Optional[float] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.id_list = list(id_list)
        if index != NOT_IN_LIST and not 0 <= index < len(self.id_list):
            raise ValueError(f"index {index} out of range for {len(self.id_list)} ids")
        if index == NOT_IN_LIST and current_id is None:
            raise ValueError("a deep-linked view needs current_id")

        self._fetch = fetch
        self.index = index
        self.current_id = current_id if index == NOT_IN_LIST else self.id_list[index]
        self.record: Optional[dict] = None
        self.error: Optional[str] = None
        self.state = PagingState.IDLE
        self.closed = False
        self.cache = cache if cache is not None else RecordCache()

        self.fetch_timeout = (
            fetch_timeout if fetch_timeout is not None else client_settings.fetch_timeout
        )
        self.swipe_threshold = (
            swipe_threshold if swipe_threshold is not None else client_settings.swipe_threshold
        )
        self.edge_resistance = (
            edge_resistance if edge_resistance is not None else client_settings.edge_resistance
        )
        self.settle_delay = (
            settle_delay if settle_delay is not None else client_settings.settle_delay
        )
        self._on_close = on_close
        self._slot = InFlightSlot()

    @classmethod
    def deep_link(
        cls, fetch: Fetcher, record_id: Any, id_list: Sequence[Any] = (), **kwargs
    ) -> "PagingController":
        """Open a single record directly (e.g. from a push notification).

        If the id happens to be in the list, the view is in-list after all.
        """
        ids = list(id_list)
        if record_id in ids:
            return cls(fetch, ids, ids.index(record_id), **kwargs)
        return cls(fetch, ids, NOT_IN_LIST, current_id=record_id, **kwargs)

    # ─── Derived view state ──────────────────────────────

    @property
    def is_in_list(self) -> bool:
        return self.index != NOT_IN_LIST and len(self.id_list) > 0

    @property
    def can_go_previous(self) -> bool:
        return self.is_in_list and self.index > 0

    @property
    def can_go_next(self) -> bool:
        return self.is_in_list and self.index < len(self.id_list) - 1

    @property
    def accepts_input(self) -> bool:
        return self.state is PagingState.IDLE and not self.closed

    def counter_label(self) -> str:
        if self.state is PagingState.LOADING:
            return "Loading..."
        if not self.is_in_list:
            return "Prayer Details"
        return f"{self.index + 1} / {len(self.id_list)}"

    # ─── Gestures ────────────────────────────────────────

    async def open(self) -> NavResult:
        """Load the record under the cursor (first render)."""
        if not self.accepts_input:
            return NavResult(NavOutcome.REJECTED, self.index)
        return await self._load(self.index, self.current_id, NavOutcome.LOADED)

    async def swipe(self, dx: float) -> NavResult:
        """Horizontal swipe released after dx px."""
        if not self.accepts_input:
            return NavResult(NavOutcome.REJECTED, self.index)
        if abs(dx) < self.swipe_threshold:
            return NavResult(NavOutcome.SNAPPED_BACK, self.index, record=self.record)
        return await self._step(1 if dx < 0 else -1, dx)

    async def next(self) -> NavResult:
        return await self._step(1)

    async def previous(self) -> NavResult:
        return await self._step(-1)

    def close(self) -> None:
        """Leave the detail view. Idempotent."""
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()

    # ─── Internals ───────────────────────────────────────

    async def _step(self, step: int, dx: float = 0.0) -> NavResult:
        if not self.accepts_input:
            return NavResult(NavOutcome.REJECTED, self.index)
        if not self.is_in_list:
            return NavResult(NavOutcome.NOT_IN_LIST, self.index, record=self.record)

        target = self.index + step
        if not 0 <= target < len(self.id_list):
            return NavResult(
                NavOutcome.BOUNCED,
                self.index,
                record=self.record,
                offset=dx * self.edge_resistance,
            )
        return await self._load(target, self.id_list[target], NavOutcome.MOVED)

    async def _load(self, target: int, record_id: Any, outcome: NavOutcome) -> NavResult:
        token = self._slot.try_acquire("navigate")
        if token is None:
            return NavResult(NavOutcome.REJECTED, self.index)

        try:
            record = self.cache.get(record_id)
            from_cache = record is not None
            if not from_cache:
                self.state = PagingState.LOADING
                try:
                    record = await self._fetch_with_timeout(record_id)
                except _FetchFailed as e:
                    return self._fail(str(e))

            self.index = target
            self.current_id = record_id
            self.record = record
            self.error = None

            if self.settle_delay > 0:
                self.state = PagingState.TRANSITIONING
                await asyncio.sleep(self.settle_delay)
            self.state = PagingState.IDLE

            logger.debug(
                "paging.moved",
                index=self.index,
                record_id=str(record_id),
                from_cache=from_cache,
            )
            return NavResult(outcome, self.index, record=record, from_cache=from_cache)
        finally:
            self.state = PagingState.IDLE
            self._slot.release(token)

    async def _fetch_with_timeout(self, record_id: Any) -> dict:
        try:
            record = await asyncio.wait_for(
                self.cache.fetch(record_id, self._fetch_required),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            raise _FetchFailed("Timed out loading prayer. Please try again.")
        except ApiError as e:
            raise _FetchFailed(
                "Prayer not found." if e.is_not_found else f"Could not load prayer: {e.message}"
            )
        except NetworkError as e:
            raise _FetchFailed(f"Could not load prayer: {e}")
        return record

    async def _fetch_required(self, record_id: Any) -> dict:
        record = await self._fetch(record_id)
        if record is None:
            raise ApiError(404, "Prayer not found")
        return record

    def _fail(self, message: str) -> NavResult:
        logger.warning("paging.fetch_failed", index=self.index, error=message)
        self.error = message
        self.state = PagingState.IDLE
        self.close()
        return NavResult(NavOutcome.FAILED, self.index, record=self.record, error=message)


class _FetchFailed(Exception):
    pass

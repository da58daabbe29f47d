"""
Now/Next Refresh Engine

Owns the service list, the per-service now/next cache and the background task
that refreshes simulcast candidates exactly when their cached programs are
expected to change.

All state is mutated from a single event loop. Operations interleave only at
await points (network fetches), so no field needs a lock; the fetch
coordinator keeps concurrent callers from fetching the same service twice.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from tuner_guide.errors import ConfigurationError, FetchError, GuideError
from tuner_guide.models import Service, sort_services
from tuner_guide.services.dedup import duplicate_candidates, uniquify
from tuner_guide.services.fetch_coordinator import FetchCoordinator
from tuner_guide.services.fetch_types import EMPTY_PAIR, CacheEntry, NowNextPair, ReloadOutcome
from tuner_guide.services.now_next import now_next
from tuner_guide.utils.logging_helpers import log_refresh_deadline, sanitize_url
from tuner_guide.utils.timezone import format_epoch_ms, now_ms, seconds_to_ms

if TYPE_CHECKING:
    from tuner_guide.config import CustomSettings
    from tuner_guide.services.mirakurun_client import EPGDataSource


logger = logging.getLogger(__name__)

LIST_REUSE_WINDOW_MS = 180_000
MAX_REFRESH_INTERVAL_MS = 900_000
BOUNDARY_DELAY_MS = 2_000
FALLBACK_INTERVAL_MS = 300_000
# Lower bound on a background sleep when the earliest deadline already passed
MIN_SLEEP_MS = 1_000


def compute_refresh_after(
    pair: NowNextPair,
    reference_time: int,
    *,
    boundary_delay_ms: int = BOUNDARY_DELAY_MS,
    max_interval_ms: int = MAX_REFRESH_INTERVAL_MS,
    fallback_interval_ms: int = FALLBACK_INTERVAL_MS,
) -> int:
    """
    Compute when a freshly fetched now/next pair goes stale

    Refreshes just after the current program ends, or just after the next one
    starts when nothing is airing, but never later than max_interval_ms from
    the reference time. Services with no known programs retry after the
    fallback interval.

    Args:
        pair: Freshly computed now/next pair
        reference_time: Epoch milliseconds the pair was computed at

    Returns:
        Epoch milliseconds after which the entry is stale
    """
    if pair.now is not None:
        candidate = pair.now.end_at + boundary_delay_ms
    elif pair.next is not None:
        candidate = pair.next.start_at + boundary_delay_ms
    else:
        return reference_time + fallback_interval_ms

    if candidate > reference_time:
        return min(candidate, reference_time + max_interval_ms)
    return reference_time + fallback_interval_ms


class NowNextRefresher:
    """Service list, now/next cache and self-rescheduling refresh task."""

    def __init__(
        self,
        data_source: EPGDataSource,
        *,
        list_reuse_window_ms: int = LIST_REUSE_WINDOW_MS,
        max_refresh_interval_ms: int = MAX_REFRESH_INTERVAL_MS,
        boundary_delay_ms: int = BOUNDARY_DELAY_MS,
        fallback_interval_ms: int = FALLBACK_INTERVAL_MS,
        max_concurrency: int = 4,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._data_source = data_source
        self._list_reuse_window_ms = list_reuse_window_ms
        self._max_refresh_interval_ms = max_refresh_interval_ms
        self._boundary_delay_ms = boundary_delay_ms
        self._fallback_interval_ms = fallback_interval_ms
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._coordinator = FetchCoordinator()

        self._services: list[Service] = []
        self._candidates: list[Service] = []
        self._uniquified: list[Service] = []
        self._cache: dict[int, CacheEntry] = {}
        self._cache_generation = 0
        self._reload_generation = 0
        self._last_list_fetch: int | None = None
        self._list_server_url: str | None = None
        self._last_error: GuideError | None = None
        self._list_fetches_in_flight = 0
        self._refresh_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, data_source: EPGDataSource, settings: CustomSettings, **kwargs) -> NowNextRefresher:
        return cls(
            data_source,
            list_reuse_window_ms=seconds_to_ms(settings.list_reuse_window_sec),
            max_refresh_interval_ms=seconds_to_ms(settings.refresh_max_interval_sec),
            boundary_delay_ms=seconds_to_ms(settings.refresh_boundary_delay_sec),
            fallback_interval_ms=seconds_to_ms(settings.refresh_fallback_interval_sec),
            max_concurrency=settings.max_concurrent_program_fetches,
            **kwargs,
        )

    # Read-only projections

    @property
    def services(self) -> tuple[Service, ...]:
        return tuple(self._services)

    @property
    def uniquified_services(self) -> tuple[Service, ...]:
        return tuple(self._uniquified)

    @property
    def duplicate_candidates(self) -> tuple[Service, ...]:
        return tuple(self._candidates)

    @property
    def last_error(self) -> GuideError | None:
        return self._last_error

    @property
    def error_message(self) -> str | None:
        return str(self._last_error) if self._last_error else None

    @property
    def is_loading(self) -> bool:
        return self._list_fetches_in_flight > 0

    @property
    def list_server_url(self) -> str | None:
        return self._list_server_url

    @property
    def last_list_fetch(self) -> int | None:
        return self._last_list_fetch

    @property
    def is_refresh_scheduled(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def now_next_for(self, service_id: int) -> NowNextPair | None:
        entry = self._cache.get(service_id)
        return entry.pair if entry else None

    def refresh_after_for(self, service_id: int) -> int | None:
        entry = self._cache.get(service_id)
        return entry.refresh_after if entry else None

    def now_next_by_service_id(self) -> dict[int, NowNextPair]:
        return {service_id: entry.pair for service_id, entry in self._cache.items()}

    def is_fetching(self, service_id: int) -> bool:
        return self._coordinator.is_fetching(service_id)

    def compute_refresh_after(self, pair: NowNextPair, reference_time: int) -> int:
        return compute_refresh_after(
            pair,
            reference_time,
            boundary_delay_ms=self._boundary_delay_ms,
            max_interval_ms=self._max_refresh_interval_ms,
            fallback_interval_ms=self._fallback_interval_ms,
        )

    def next_refresh_deadline(self, reference_time: int | None = None) -> int:
        """Earliest refresh deadline among duplicate candidates."""
        if reference_time is None:
            reference_time = self._clock()

        deadlines = []
        for service in self._candidates:
            entry = self._cache.get(service.id)
            if entry is not None:
                deadlines.append(entry.refresh_after)

        if not deadlines:
            return reference_time + self._fallback_interval_ms
        return min(deadlines)

    # Operations

    async def reload(self, server_url: str | None, *, force: bool = False) -> ReloadOutcome:
        """
        Load the service list and refresh simulcast candidates

        A list fetched from the same server within the reuse window is reused
        without a network call unless force is set.

        Args:
            server_url: Normalized tuner server URL, or None if unconfigured
            force: Bypass the list reuse window

        Returns:
            ReloadOutcome with status "fetched", "cached", "superseded" or "failed"
        """
        self._reload_generation += 1
        generation = self._reload_generation
        self._cancel_refresh_task()

        if not server_url:
            self._clear_state()
            self._last_error = ConfigurationError()
            logger.error("Reload aborted: %s", self._last_error)
            return ReloadOutcome(status="failed", error=self._last_error)

        if self._list_server_url is not None and server_url != self._list_server_url:
            logger.info(
                "Server changed from %s to %s, discarding cached guide",
                sanitize_url(self._list_server_url),
                sanitize_url(server_url),
            )
            self._clear_state()

        if not force and self._is_list_reusable(server_url, self._clock()):
            status = "cached"
            logger.info(
                "Reusing service list from %s fetched at %s",
                sanitize_url(server_url),
                format_epoch_ms(self._last_list_fetch),
            )
        else:
            status = "fetched"
            error = await self._fetch_service_list(server_url, generation)
            if generation != self._reload_generation:
                return self._superseded_outcome()
            if error is not None:
                return ReloadOutcome(status="failed", error=error)

        await self.refresh_duplicate_candidates(server_url)

        if generation != self._reload_generation:
            return self._superseded_outcome()

        self._recompute_uniquified()
        self._arm_refresh_task(server_url)

        outcome = ReloadOutcome(
            status=status,
            services=len(self._services),
            unique_services=len(self._uniquified),
            duplicate_candidates=len(self._candidates),
        )
        logger.info(
            "Reload %s: %s services, %s unique, %s simulcast candidates",
            outcome.status,
            outcome.services,
            outcome.unique_services,
            outcome.duplicate_candidates,
        )
        return outcome

    async def ensure_now_next(
        self,
        service: Service,
        server_url: str | None,
        force_refresh: bool = False,
    ) -> NowNextPair | None:
        """
        Make sure the now/next entry of a service is fresh

        Does nothing while the cached entry is fresh (unless forced) or while
        another fetch for the same service is in flight. A failed fetch is
        cached as an empty pair and retried after the fallback interval.

        Returns:
            The current pair for the service, or None if none is known yet
        """
        if not server_url:
            return self.now_next_for(service.id)

        entry = self._cache.get(service.id)
        if not force_refresh and entry is not None and entry.is_fresh(self._clock()):
            return entry.pair

        generation = self._cache_generation
        with self._coordinator.claim(service.id) as claimed:
            if not claimed:
                return entry.pair if entry else None
            pair, refresh_after = await self._fetch_now_next(service, server_url)

        if generation != self._cache_generation:
            logger.debug("Guide cache was reset during fetch for service %s, discarding result", service.id)
            return pair

        self._cache[service.id] = CacheEntry(pair=pair, refresh_after=refresh_after)
        log_refresh_deadline(logger, service.id, refresh_after)
        self._recompute_uniquified()
        return pair

    async def refresh_duplicate_candidates(self, server_url: str, force_refresh: bool = False) -> None:
        """Refresh stale entries of every simulcast candidate, isolating failures per service."""
        candidates = list(self._candidates)
        if not candidates:
            return

        logger.debug("Refreshing now/next for %s simulcast candidates", len(candidates))

        async def refresh_one(service: Service) -> None:
            async with self._semaphore:
                await self.ensure_now_next(service, server_url, force_refresh)

        await asyncio.gather(*(refresh_one(service) for service in candidates))

    async def close(self) -> None:
        """Cancel the background refresh task and wait for it to finish."""
        task = self._refresh_task
        self._cancel_refresh_task()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.debug("Refresh engine closed")

    # Internals

    def _is_list_reusable(self, server_url: str, reference_time: int) -> bool:
        return (
            self._list_server_url == server_url
            and self._last_list_fetch is not None
            and reference_time - self._last_list_fetch < self._list_reuse_window_ms
        )

    async def _fetch_service_list(self, server_url: str, generation: int) -> GuideError | None:
        """Fetch and apply the service list unless a newer reload started meanwhile."""
        logger.info("Fetching service list from %s", sanitize_url(server_url))
        self._list_fetches_in_flight += 1
        try:
            fetched = await self._data_source.fetch_services(server_url)
        except Exception as exc:
            error = exc if isinstance(exc, GuideError) else FetchError(str(exc))
            if generation != self._reload_generation:
                logger.warning("Discarding failed service list fetch of a superseded reload: %s", error)
                return error
            logger.error("Service list fetch failed: %s", error, exc_info=not isinstance(exc, GuideError))
            self._cancel_refresh_task()
            self._clear_state()
            self._last_error = error
            return error
        finally:
            self._list_fetches_in_flight -= 1

        if generation != self._reload_generation:
            logger.info("Discarding service list of a superseded reload")
            return None

        self._services = sort_services(fetched)
        present = {service.id for service in self._services}
        pruned = [service_id for service_id in self._cache if service_id not in present]
        for service_id in pruned:
            del self._cache[service_id]
        if pruned:
            logger.debug("Pruned now/next entries for %s vanished services", len(pruned))

        self._candidates = duplicate_candidates(self._services)
        self._last_list_fetch = self._clock()
        self._list_server_url = server_url
        self._last_error = None
        self._recompute_uniquified()
        return None

    async def _fetch_now_next(self, service: Service, server_url: str) -> tuple[NowNextPair, int]:
        try:
            programs = await self._data_source.fetch_programs(
                server_url,
                service.network_id,
                service.service_id,
            )
        except Exception as exc:
            reference = self._clock()
            logger.warning(
                "Program fetch failed for service %s (%s): %s",
                service.id,
                service.name,
                exc,
                exc_info=not isinstance(exc, GuideError),
            )
            return EMPTY_PAIR, reference + self._fallback_interval_ms

        reference = self._clock()
        pair = now_next(programs, reference)
        return pair, self.compute_refresh_after(pair, reference)

    def _superseded_outcome(self) -> ReloadOutcome:
        logger.info("Reload superseded by a newer reload, keeping its result")
        return ReloadOutcome(
            status="superseded",
            services=len(self._services),
            unique_services=len(self._uniquified),
            duplicate_candidates=len(self._candidates),
        )

    def _recompute_uniquified(self) -> None:
        self._uniquified = uniquify(self._services, self.now_next_by_service_id())

    def _clear_state(self) -> None:
        self._services = []
        self._candidates = []
        self._uniquified = []
        self._cache = {}
        self._cache_generation += 1
        self._last_list_fetch = None
        self._list_server_url = None

    def _arm_refresh_task(self, server_url: str) -> None:
        self._cancel_refresh_task()
        if not self._candidates:
            logger.debug("No simulcast candidates, background refresh not scheduled")
            return
        self._refresh_task = asyncio.create_task(
            self._refresh_loop(server_url),
            name="now-next-refresh",
        )

    def _cancel_refresh_task(self) -> None:
        task = self._refresh_task
        self._refresh_task = None
        if task is not None and not task.done():
            task.cancel()

    def _refresh_loop_is_current(self, task: asyncio.Task | None, server_url: str) -> bool:
        return task is not None and self._refresh_task is task and self._list_server_url == server_url

    async def _refresh_loop(self, server_url: str) -> None:
        task = asyncio.current_task()
        while True:
            reference = self._clock()
            deadline = self.next_refresh_deadline(reference)
            delay_ms = max(deadline - reference, MIN_SLEEP_MS)
            logger.debug("Next simulcast refresh at %s", format_epoch_ms(reference + delay_ms))

            await self._sleep(delay_ms / 1000)
            if not self._refresh_loop_is_current(task, server_url):
                logger.debug("Background refresh superseded, stopping")
                return

            try:
                await self.refresh_duplicate_candidates(server_url)
            except Exception as exc:
                logger.error("Exception in background now/next refresh: %s", exc, exc_info=True)
            self._recompute_uniquified()


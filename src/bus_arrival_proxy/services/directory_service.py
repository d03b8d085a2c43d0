"""Reference directory of bus stops, rebuilt from the paginated BusStops listing.

The directory is cached for a long horizon and only used to enrich arrival
responses, so a rebuild never fails the caller: it degrades to whatever pages
were collected before the first failure.
"""

import logging
import time
from typing import Protocol

from bus_arrival_proxy.data.cache import Clock, SnapshotCache
from bus_arrival_proxy.matching.stop_search import search_stops
from bus_arrival_proxy.models.datamall import BusStop, ReferenceSnapshot, StopsPage
from bus_arrival_proxy.models.responses import DirectoryState, DirectoryStatus

logger = logging.getLogger(__name__)

REFERENCE_TTL_SECONDS = 24 * 60 * 60
PAGE_SIZE = 500
MAX_PAGES = 100


class StopsPageFetcher(Protocol):
    async def fetch_stops_page(self, api_key: str, offset: int) -> StopsPage: ...


class ReferenceDirectory:
    """Process-wide stop directory with a wholesale-replace TTL snapshot.

    Rebuilds are serialised behind the snapshot lock: concurrent callers that
    find the directory stale wait for the one rebuild in progress and then
    read its result.
    """

    def __init__(
        self,
        client: StopsPageFetcher,
        ttl: float = REFERENCE_TTL_SECONDS,
        page_size: int = PAGE_SIZE,
        max_pages: int = MAX_PAGES,
        clock: Clock = time.monotonic,
    ):
        self._client = client
        self._cache = SnapshotCache[ReferenceSnapshot](ttl=ttl, clock=clock)
        self._page_size = page_size
        self._max_pages = max_pages
        self._building = False

    @property
    def state(self) -> DirectoryState:
        if self._building:
            return DirectoryState.BUILDING
        if self._cache.entry is None:
            return DirectoryState.ABSENT
        if self._cache.is_stale():
            return DirectoryState.STALE
        return DirectoryState.READY

    @property
    def snapshot(self) -> ReferenceSnapshot | None:
        """The last snapshot built, stale or not."""
        entry = self._cache.entry
        return entry.value if entry else None

    async def get_directory(self, api_key: str) -> ReferenceSnapshot:
        """Return the current snapshot, rebuilding it first if absent or stale.

        Args:
            api_key: DataMall account key used for the rebuild, if one is needed.

        Returns:
            A ReferenceSnapshot. Never raises for upstream failures; a failed
            rebuild yields a partial (possibly empty) snapshot.
        """
        cached = self._cache.get()
        if cached is not None:
            return cached

        async with self._cache.lock:
            # Double-check after acquiring lock
            cached = self._cache.get()
            if cached is not None:
                return cached

            self._building = True
            try:
                snapshot = await self._rebuild(api_key)
            finally:
                self._building = False

            self._cache.set(snapshot, fetched_at=snapshot.fetched_at)
            return snapshot

    async def _rebuild(self, api_key: str) -> ReferenceSnapshot:
        """Walk the listing page by page from offset 0.

        Stops on an empty page, a short page, a failed page, or after
        ``max_pages`` pages.
        """
        stops: list[BusStop] = []
        offset = 0
        pages = 0
        complete = True

        for _ in range(self._max_pages):
            try:
                page = await self._client.fetch_stops_page(api_key, offset)
            except Exception as e:
                logger.warning(f"Failed to fetch bus stops at offset={offset}: {e}")
                complete = False
                break

            pages += 1
            if not page.items:
                break
            stops.extend(page.items)
            if page.is_last_page or len(page.items) < self._page_size:
                break
            offset += self._page_size
        else:
            logger.warning(
                f"Stopped bus stop pagination after {self._max_pages} pages at offset={offset}"
            )
            complete = False

        logger.info(f"Fetched {len(stops)} bus stops in {pages} pages")
        return ReferenceSnapshot(
            stops=tuple(stops),
            fetched_at=self._cache.now(),
            pages_fetched=pages,
            complete=complete,
        )

    async def get_stop(self, code: str, api_key: str) -> BusStop | None:
        """Look up a stop by exact, case-sensitive code."""
        snapshot = await self.get_directory(api_key)
        return snapshot.find(code)

    async def get_display_name(self, code: str, api_key: str) -> str | None:
        """Human-readable name for ``code``, or None when the directory has no match."""
        stop = await self.get_stop(code, api_key)
        if stop is None or not stop.description:
            return None
        return stop.description

    async def search(self, query: str, api_key: str, limit: int = 10) -> list[tuple[BusStop, float]]:
        """Fuzzy-search the directory by description and road name."""
        snapshot = await self.get_directory(api_key)
        return search_stops(snapshot.stops, query, limit=limit)

    def status(self) -> DirectoryStatus:
        entry = self._cache.entry
        if entry is None:
            return DirectoryStatus(state=self.state)
        snapshot = entry.value
        return DirectoryStatus(
            state=self.state,
            stop_count=len(snapshot),
            age_seconds=entry.age(self._cache.now()),
            pages_fetched=snapshot.pages_fetched,
            complete=snapshot.complete,
        )

    def clear(self) -> None:
        self._cache.clear()

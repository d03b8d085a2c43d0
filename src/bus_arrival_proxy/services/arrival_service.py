"""Short-lived per-stop cache of live arrival payloads.

Every single-stop and batch request goes through ``ArrivalCache.get``.
Concurrent misses for the same stop share one upstream call (single-flight);
a failed call caches nothing and leaves any older entry in place.
"""

import logging
import time
from typing import Protocol

import httpx

from bus_arrival_proxy.data.cache import CacheEntry, Clock, KeyedCache
from bus_arrival_proxy.errors import UpstreamError
from bus_arrival_proxy.models.datamall import ArrivalPayload
from bus_arrival_proxy.models.responses import ArrivalResult
from bus_arrival_proxy.services.directory_service import ReferenceDirectory

logger = logging.getLogger(__name__)

ARRIVAL_TTL_SECONDS = 15.0

# Field added to arrival payloads when the directory knows the stop
DISPLAY_NAME_FIELD = "BusStopName"


class ArrivalFetcher(Protocol):
    async def fetch_arrival(self, api_key: str, stop_code: str) -> ArrivalPayload: ...


class ArrivalCache:
    """Per-stop arrival snapshots with lazy TTL staleness.

    The map grows with the set of distinct stop codes ever queried, which is
    bounded by the size of the stop directory.
    """

    def __init__(
        self,
        client: ArrivalFetcher,
        directory: ReferenceDirectory | None = None,
        ttl: float = ARRIVAL_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self._client = client
        self._directory = directory
        self._entries = KeyedCache[ArrivalPayload](ttl=ttl, clock=clock)

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, stop_code: str, api_key: str) -> ArrivalResult:
        """Return the arrival payload for ``stop_code``.

        Served from cache while younger than the TTL; otherwise fetched,
        enriched with the stop name and stored.

        Returns:
            ArrivalResult. ``was_cached`` is False only for the caller whose
            request reached upstream.

        Raises:
            UpstreamError: If the upstream call fails.
        """
        payload = self._entries.get(stop_code)
        if payload is not None:
            entry = self._entries.get_entry(stop_code)
            return ArrivalResult(
                stop_code=stop_code,
                payload=payload,
                was_cached=True,
                fetched_at=entry.fetched_at,
            )

        # callers only share a fetch made with their own key
        entry, started = await self._entries.load(
            stop_code,
            lambda: self._fetch(stop_code, api_key),
            flight_key=(stop_code, api_key),
        )
        return ArrivalResult(
            stop_code=stop_code,
            payload=entry.value,
            was_cached=not started,
            fetched_at=entry.fetched_at,
        )

    async def _fetch(self, stop_code: str, api_key: str) -> CacheEntry[ArrivalPayload]:
        """Fetch, stamp and enrich one arrival payload.

        ``fetched_at`` is read as soon as upstream answers, before enrichment.
        """
        try:
            payload = await self._client.fetch_arrival(api_key, stop_code)
        except UpstreamError as e:
            logger.warning(f"Upstream error for bus stop {stop_code}: {e}")
            raise
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch arrivals for bus stop {stop_code}: {e}")
            raise UpstreamError(status_code=502, raw_body=str(e), reason="Bad Gateway") from e

        fetched_at = self._entries.now()
        if not isinstance(payload, dict):
            logger.warning(f"Unexpected arrival payload for bus stop {stop_code}: {type(payload).__name__}")
            raise UpstreamError(
                status_code=502,
                raw_body=f"expected a JSON object, got {type(payload).__name__}",
                reason="Bad Gateway",
            )

        enriched = await self._enrich(stop_code, payload, api_key)
        return CacheEntry(value=enriched, fetched_at=fetched_at)

    async def _enrich(self, stop_code: str, payload: ArrivalPayload, api_key: str) -> ArrivalPayload:
        """Attach the directory's stop name, if any. Never fails."""
        if self._directory is None:
            return payload

        try:
            name = await self._directory.get_display_name(stop_code, api_key)
        except Exception as e:
            logger.debug(f"Error fetching bus stop name for {stop_code}: {e}")
            return payload

        if name is None:
            return payload
        return {**payload, DISPLAY_NAME_FIELD: name}

    def clear(self) -> None:
        self._entries.clear()

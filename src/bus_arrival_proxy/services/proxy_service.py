"""Process-wide proxy boundary used by the tool layer.

Owns the shared DataMall client, stop directory, arrival cache and batch
orchestrator, created lazily on first use. Caller input is validated here
before anything reaches upstream.
"""

import logging
from collections.abc import Sequence

from bus_arrival_proxy.data.config import ProxyConfig, get_proxy_config
from bus_arrival_proxy.data.datamall_client import DataMallClient
from bus_arrival_proxy.errors import InputError
from bus_arrival_proxy.models.datamall import BusStop
from bus_arrival_proxy.models.responses import (
    ArrivalResult,
    BatchItemResult,
    DirectoryState,
    DirectoryStatus,
)
from bus_arrival_proxy.services.arrival_service import ArrivalCache
from bus_arrival_proxy.services.batch_service import BatchOrchestrator
from bus_arrival_proxy.services.directory_service import ReferenceDirectory

logger = logging.getLogger(__name__)

# Module-level singletons (lazy-initialized)
_config: ProxyConfig | None = None
_client: DataMallClient | None = None
_directory: ReferenceDirectory | None = None
_arrivals: ArrivalCache | None = None
_batch: BatchOrchestrator | None = None


def _get_config() -> ProxyConfig:
    """Get or create the config singleton."""
    global _config
    if _config is None:
        _config = get_proxy_config()
    return _config


def _get_client() -> DataMallClient:
    """Get or create the shared DataMall client."""
    global _client
    if _client is None:
        _client = DataMallClient(_get_config())
        _client.open()
    return _client


def get_directory() -> ReferenceDirectory:
    """Get or create the stop directory singleton."""
    global _directory
    if _directory is None:
        config = _get_config()
        _directory = ReferenceDirectory(
            _get_client(),
            ttl=config.reference_ttl_seconds,
            page_size=config.page_size,
            max_pages=config.max_directory_pages,
        )
    return _directory


def get_arrival_cache() -> ArrivalCache:
    """Get or create the arrival cache singleton."""
    global _arrivals
    if _arrivals is None:
        config = _get_config()
        _arrivals = ArrivalCache(
            _get_client(),
            directory=get_directory(),
            ttl=config.arrival_ttl_seconds,
        )
    return _arrivals


def get_batch_orchestrator() -> BatchOrchestrator:
    """Get or create the batch orchestrator singleton."""
    global _batch
    if _batch is None:
        config = _get_config()
        _batch = BatchOrchestrator(
            get_arrival_cache(),
            max_size=config.batch_max_size,
            chunk_size=config.batch_chunk_size,
        )
    return _batch


def resolve_api_key(api_key: str | None) -> str:
    """Pick the caller's key, falling back to the configured account key.

    Raises:
        InputError: If neither is a non-empty string.
    """
    if isinstance(api_key, str) and api_key.strip():
        return api_key
    fallback = _get_config().account_key
    if fallback and fallback.strip():
        logger.debug("No caller API key, using configured DATAMALL_ACCOUNT_KEY")
        return fallback
    raise InputError("API key is required")


def _require_stop_code(stop_code: str | None) -> str:
    if not isinstance(stop_code, str) or not stop_code.strip():
        raise InputError("Bus stop code is required")
    return stop_code


async def fetch_arrival(stop_code: str | None, api_key: str | None = None) -> ArrivalResult:
    """Single-stop arrival lookup with the stop name attached when known.

    Raises:
        InputError: If the key or stop code is missing.
        UpstreamError: If DataMall rejects or fails the request.
    """
    key = resolve_api_key(api_key)
    code = _require_stop_code(stop_code)
    return await get_arrival_cache().get(code, key)


async def fetch_arrival_batch(
    stop_codes: Sequence[str] | None, api_key: str | None = None
) -> list[BatchItemResult]:
    """Arrival lookup for 1..50 stops; per-stop failures become failure records.

    Raises:
        InputError: If the key is missing or the batch shape is invalid.
    """
    key = resolve_api_key(api_key)
    if stop_codes is None:
        raise InputError("busStopCodes array is required")
    return await get_batch_orchestrator().run(stop_codes, key)


async def get_bus_stop(stop_code: str | None, api_key: str | None = None) -> BusStop | None:
    key = resolve_api_key(api_key)
    code = _require_stop_code(stop_code)
    return await get_directory().get_stop(code, key)


async def search_bus_stops(
    query: str | None, api_key: str | None = None, limit: int = 10
) -> tuple[list[tuple[BusStop, float]], int]:
    """Fuzzy search over the directory.

    Returns:
        (matches, directory size searched).
    """
    key = resolve_api_key(api_key)
    if not isinstance(query, str) or not query.strip():
        raise InputError("Search query is required")
    directory = get_directory()
    matches = await directory.search(query, key, limit=limit)
    snapshot = directory.snapshot
    return matches, len(snapshot) if snapshot else 0


def directory_status() -> DirectoryStatus:
    if _directory is None:
        return DirectoryStatus(state=DirectoryState.ABSENT)
    return _directory.status()


async def warm_directory(api_key: str | None = None) -> DirectoryStatus:
    """Build the directory ahead of the first arrival request."""
    key = resolve_api_key(api_key)
    await get_directory().get_directory(key)
    return directory_status()


def clear_caches() -> None:
    """Drop all cached directory and arrival data.

    Useful for testing or forcing fresh data on next request.
    """
    if _directory is not None:
        _directory.clear()
    if _arrivals is not None:
        _arrivals.clear()


async def aclose() -> None:
    """Close the shared HTTP client."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def shutdown() -> None:
    """Close the shared HTTP client, then drop every singleton."""
    await aclose()
    reset_service()


def reset_service() -> None:
    """Reset the service state completely.

    Drops every singleton and resets config. Test-only: the shared HTTP client
    is dropped, not closed; use ``shutdown()`` when a real client was opened.
    """
    global _config, _client, _directory, _arrivals, _batch
    _config = None
    _client = None
    _directory = None
    _arrivals = None
    _batch = None
    # Clear the lru_cache on get_proxy_config so it re-reads .env/environment
    # (hasattr check handles case where function is mocked in tests)
    if hasattr(get_proxy_config, "cache_clear"):
        get_proxy_config.cache_clear()

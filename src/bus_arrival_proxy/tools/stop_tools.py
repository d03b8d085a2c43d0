"""MCP tools for the bus stop directory."""

from bus_arrival_proxy.app import mcp
from bus_arrival_proxy.errors import ProxyError
from bus_arrival_proxy.models.datamall import BusStop
from bus_arrival_proxy.models.responses import (
    BusStopResult,
    DirectoryStatus,
    GetBusStopResponse,
    SearchBusStopsResponse,
)
from bus_arrival_proxy.services import proxy_service


def _to_result(stop: BusStop, score: float | None = None) -> BusStopResult:
    return BusStopResult(
        bus_stop_code=stop.code,
        description=stop.description,
        road_name=stop.road_name,
        latitude=stop.latitude,
        longitude=stop.longitude,
        score=score,
    )


@mcp.tool()
async def get_bus_stop(bus_stop_code: str, api_key: str | None = None) -> GetBusStopResponse:
    """Look up a bus stop in the directory by its exact code.

    Args:
        bus_stop_code: Bus stop code (e.g., "83139"). Case-sensitive.
        api_key: DataMall account key. Falls back to the server's configured key.
    """
    try:
        stop = await proxy_service.get_bus_stop(bus_stop_code, api_key)
    except ProxyError as e:
        return GetBusStopResponse(found=False, error=str(e))

    if stop is None:
        return GetBusStopResponse(found=False)
    return GetBusStopResponse(found=True, stop=_to_result(stop))


@mcp.tool()
async def search_bus_stops(
    query: str,
    api_key: str | None = None,
    limit: int = 10,
) -> SearchBusStopsResponse:
    """Search bus stops by description or road name.

    Matching is fuzzy and understands DataMall abbreviations
    ("Opp", "Bef", "Aft", "Blk", "Stn", ...). An exact stop code scores 100.

    Examples:
        search_bus_stops(query="opposite block 123")
        search_bus_stops(query="Bukit Timah Rd")

    Args:
        query: Free-text search.
        api_key: DataMall account key. Falls back to the server's configured key.
        limit: Maximum number of results (1-50, default 10).
    """
    # Validate and clamp limit to 1-50
    limit = max(1, min(50, limit))

    try:
        matches, directory_size = await proxy_service.search_bus_stops(query, api_key, limit=limit)
    except ProxyError as e:
        return SearchBusStopsResponse(stops=[], count=0, directory_size=0, error=str(e))

    stops = [_to_result(stop, score) for stop, score in matches]
    return SearchBusStopsResponse(stops=stops, count=len(stops), directory_size=directory_size)


@mcp.tool()
def directory_status() -> DirectoryStatus:
    """Report the bus stop directory cache state (absent, building, ready or stale)."""
    return proxy_service.directory_status()

from bus_arrival_proxy.app import mcp
from bus_arrival_proxy.errors import ProxyError
from bus_arrival_proxy.models.responses import BatchResponse, BusArrivalResponse
from bus_arrival_proxy.services import proxy_service


@mcp.tool()
async def get_bus_arrival(
    bus_stop_code: str,
    api_key: str | None = None,
) -> BusArrivalResponse:
    """Get live bus arrivals at a Singapore bus stop.

    Results are cached for 15 seconds per stop. When the stop is in the bus
    stop directory, the payload gains a "BusStopName" field.

    Args:
        bus_stop_code: Five-digit bus stop code (e.g., "83139").
        api_key: DataMall account key. Falls back to the server's configured key.

    Returns:
        BusArrivalResponse with the DataMall arrival payload, or an error and
        the status it maps to (400 for bad input, upstream status otherwise).
    """
    try:
        result = await proxy_service.fetch_arrival(bus_stop_code, api_key)
    except ProxyError as e:
        return BusArrivalResponse(
            bus_stop_code=bus_stop_code or "",
            success=False,
            error=str(e),
            status_code=e.status_code,
        )

    return BusArrivalResponse(
        bus_stop_code=result.stop_code,
        success=True,
        data=result.payload,
        cached=result.was_cached,
    )


@mcp.tool()
async def get_bus_arrival_batch(
    bus_stop_codes: list[str],
    api_key: str | None = None,
) -> BatchResponse:
    """Get live bus arrivals for up to 50 bus stops at once.

    Each stop is fetched independently: one stop failing does not affect the
    others. Results are in the same order as the input codes.

    Args:
        bus_stop_codes: 1-50 bus stop codes.
        api_key: DataMall account key. Falls back to the server's configured key.

    Returns:
        BatchResponse with one result per code. If the request itself is
        invalid (no key, empty or oversized batch), results is empty and
        error describes the problem.
    """
    try:
        results = await proxy_service.fetch_arrival_batch(bus_stop_codes, api_key)
    except ProxyError as e:
        return BatchResponse(results=[], success_count=0, failure_count=0, error=str(e))

    failures = sum(1 for r in results if not r.success)
    return BatchResponse(
        results=results,
        success_count=len(results) - failures,
        failure_count=failures,
    )

"""Tests for the MCP tool layer."""

import pytest

from conftest import FakeDataMall, make_arrival

from bus_arrival_proxy.data.config import ProxyConfig
from bus_arrival_proxy.errors import UpstreamError
from bus_arrival_proxy.models.datamall import BusStop
from bus_arrival_proxy.services import proxy_service
from bus_arrival_proxy.tools.arrival_tools import get_bus_arrival, get_bus_arrival_batch
from bus_arrival_proxy.tools.stop_tools import directory_status, get_bus_stop, search_bus_stops


@pytest.fixture(autouse=True)
def fake_client():
    """Install a fake DataMall client behind fresh singletons."""
    proxy_service.reset_service()
    client = FakeDataMall(
        pages=[
            [
                BusStop(BusStopCode="83139", Description="Blk 19", RoadName="Siglap Rd"),
                BusStop(BusStopCode="83151", Description="Opp Blk 5", RoadName="Siglap Rd"),
            ]
        ],
        arrivals={
            "83139": make_arrival("83139"),
            "83151": make_arrival("83151"),
            "50000": UpstreamError(500, "Internal error", reason="Internal Server Error"),
        },
    )
    proxy_service._config = ProxyConfig(DATAMALL_ACCOUNT_KEY=None)
    proxy_service._client = client
    yield client
    proxy_service.reset_service()


@pytest.mark.asyncio
async def test_get_bus_arrival_success(fake_client: FakeDataMall):
    response = await get_bus_arrival("83139", api_key="key")

    assert response.success is True
    assert response.cached is False
    assert response.data["BusStopName"] == "Blk 19"
    assert response.error is None


@pytest.mark.asyncio
async def test_get_bus_arrival_missing_key():
    response = await get_bus_arrival("83139")

    assert response.success is False
    assert response.status_code == 400
    assert response.error == "API key is required"


@pytest.mark.asyncio
async def test_get_bus_arrival_upstream_error():
    response = await get_bus_arrival("50000", api_key="key")

    assert response.success is False
    assert response.status_code == 500
    assert response.error == "API Error: 500 Internal Server Error - Internal error"


@pytest.mark.asyncio
async def test_get_bus_arrival_batch_mixed():
    response = await get_bus_arrival_batch(["83139", "99999", "83151"], api_key="key")

    assert response.error is None
    assert [r.stop_code for r in response.results] == ["83139", "99999", "83151"]
    assert response.success_count == 2
    assert response.failure_count == 1
    assert response.results[1].success is False


@pytest.mark.asyncio
async def test_get_bus_arrival_batch_too_large(fake_client: FakeDataMall):
    response = await get_bus_arrival_batch([str(i) for i in range(51)], api_key="key")

    assert response.results == []
    assert response.error == "Maximum 50 bus stops per batch request"
    assert fake_client.arrival_calls == []


@pytest.mark.asyncio
async def test_batch_records_use_datamall_key_names():
    response = await get_bus_arrival_batch(["83139"], api_key="key")

    dumped = response.results[0].model_dump(by_alias=True, exclude_none=True)
    assert dumped["BusStopCode"] == "83139"
    assert dumped["success"] is True
    assert "error" not in dumped


@pytest.mark.asyncio
async def test_get_bus_stop_found_and_missing():
    found = await get_bus_stop("83151", api_key="key")
    missing = await get_bus_stop("00000", api_key="key")

    assert found.found is True
    assert found.stop.description == "Opp Blk 5"
    assert found.stop.road_name == "Siglap Rd"
    assert missing.found is False
    assert missing.error is None


@pytest.mark.asyncio
async def test_search_bus_stops_clamps_limit():
    response = await search_bus_stops("Siglap Road", api_key="key", limit=0)

    assert response.count == 1
    assert response.directory_size == 2


@pytest.mark.asyncio
async def test_search_bus_stops_without_key():
    response = await search_bus_stops("Siglap", api_key=None)

    assert response.count == 0
    assert response.error == "API key is required"


@pytest.mark.asyncio
async def test_directory_status_tool():
    assert directory_status().state.value == "absent"

    await get_bus_arrival("83139", api_key="key")

    status = directory_status()
    assert status.state.value == "ready"
    assert status.stop_count == 2

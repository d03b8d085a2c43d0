"""Shared fakes for the DataMall client and the clock."""

import asyncio
import copy

import pytest

from bus_arrival_proxy.errors import UpstreamError
from bus_arrival_proxy.models.datamall import BusStop, StopsPage


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDataMall:
    """In-memory stand-in for DataMallClient.

    ``pages`` is indexed by offset // page_size; an entry may be an exception
    to raise instead. ``arrivals`` maps stop code -> payload or exception;
    unknown codes answer 404.
    """

    def __init__(
        self,
        pages: list | None = None,
        arrivals: dict | None = None,
        page_size: int = 500,
        delay: float = 0.0,
    ):
        self.pages = pages if pages is not None else []
        self.arrivals = arrivals if arrivals is not None else {}
        self.page_size = page_size
        self.delay = delay
        self.page_calls: list[int] = []
        self.arrival_calls: list[str] = []
        self.api_keys: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_stops_page(self, api_key: str, offset: int) -> StopsPage:
        self.page_calls.append(offset)
        self.api_keys.append(api_key)
        if self.delay:
            await asyncio.sleep(self.delay)

        index = offset // self.page_size
        if index >= len(self.pages):
            return StopsPage(items=[], is_last_page=True)
        page = self.pages[index]
        if isinstance(page, Exception):
            raise page
        return StopsPage(items=list(page), is_last_page=len(page) < self.page_size)

    async def fetch_arrival(self, api_key: str, stop_code: str) -> dict:
        self.arrival_calls.append(stop_code)
        self.api_keys.append(api_key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.arrivals.get(stop_code)
            if result is None:
                raise UpstreamError(404, raw_body='{"message": "not found"}', reason="Not Found")
            if isinstance(result, Exception):
                raise result
            return copy.deepcopy(result)
        finally:
            self.in_flight -= 1


def make_stops(count: int, start: int = 10000) -> list[BusStop]:
    """Create ``count`` directory records with sequential codes."""
    return [
        BusStop(BusStopCode=str(start + i), Description=f"Stop {start + i}", RoadName="Test Rd")
        for i in range(count)
    ]


def make_arrival(stop_code: str, service_no: str = "15") -> dict:
    """Create a DataMall v3 BusArrival payload."""
    return {
        "odata.metadata": "https://datamall2.mytransport.sg/ltaodataservice/v3/BusArrival",
        "BusStopCode": stop_code,
        "Services": [
            {
                "ServiceNo": service_no,
                "Operator": "GAS",
                "NextBus": {
                    "OriginCode": "77009",
                    "DestinationCode": "77009",
                    "EstimatedArrival": "2024-08-14T16:41:48+08:00",
                    "Load": "SEA",
                    "Feature": "WAB",
                    "Type": "DD",
                },
            }
        ],
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

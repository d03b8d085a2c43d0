"""Pydantic models for LTA DataMall payloads.

Only the bus stop record is modelled. Arrival payloads are passed through
as opaque JSON objects.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ArrivalPayload = dict[str, Any]


class BusStop(BaseModel):
    """One record from the BusStops listing.

    Unknown upstream fields are kept so the record round-trips unchanged.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    code: str = Field(alias="BusStopCode")
    description: str = Field(default="", alias="Description")
    road_name: str | None = Field(default=None, alias="RoadName")
    latitude: float | None = Field(default=None, alias="Latitude")
    longitude: float | None = Field(default=None, alias="Longitude")


class BusStopsEnvelope(BaseModel):
    """The ``{"value": [...]}`` envelope DataMall wraps listings in."""

    model_config = ConfigDict(extra="ignore")

    value: list[BusStop] | None = None


@dataclass(frozen=True)
class StopsPage:
    items: list[BusStop]
    is_last_page: bool


@dataclass(frozen=True)
class ReferenceSnapshot:
    """The stop directory as collected by one rebuild.

    ``complete`` is False when the rebuild stopped on a failed page and the
    snapshot only holds what was collected before the failure.
    """

    stops: tuple[BusStop, ...]
    fetched_at: float
    pages_fetched: int = 0
    complete: bool = True

    @cached_property
    def by_code(self) -> dict[str, BusStop]:
        # first record wins if upstream ever repeats a code across pages
        index: dict[str, BusStop] = {}
        for stop in self.stops:
            index.setdefault(stop.code, stop)
        return index

    def __len__(self) -> int:
        return len(self.stops)

    def find(self, code: str) -> BusStop | None:
        """Exact, case-sensitive lookup by stop code."""
        return self.by_code.get(code)

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from bus_arrival_proxy.models.datamall import ArrivalPayload


class DirectoryState(str, Enum):
    """Lifecycle of the reference directory.

    ABSENT -> BUILDING -> READY -> STALE -> BUILDING -> READY ...
    A failing rebuild goes to READY with whatever it collected, never to an
    error state.
    """

    ABSENT = "absent"
    BUILDING = "building"
    READY = "ready"
    STALE = "stale"


class ArrivalResult(BaseModel):
    """Outcome of one ArrivalCache lookup."""

    stop_code: str
    payload: ArrivalPayload
    was_cached: bool
    fetched_at: float


class BatchItemResult(BaseModel):
    """Tagged per-stop outcome of a batch request.

    Success records carry ``data`` and ``cached``; failure records carry
    ``error`` (and the status the failure maps to).
    """

    model_config = ConfigDict(populate_by_name=True)

    stop_code: str = Field(alias="BusStopCode")
    success: bool
    data: ArrivalPayload | None = None
    cached: bool | None = None
    error: str | None = None
    status_code: int | None = None

    @classmethod
    def ok(cls, result: ArrivalResult) -> "BatchItemResult":
        return cls(
            stop_code=result.stop_code,
            success=True,
            data=result.payload,
            cached=result.was_cached,
        )

    @classmethod
    def failed(cls, stop_code: str, message: str, status_code: int | None = None) -> "BatchItemResult":
        return cls(stop_code=stop_code, success=False, error=message, status_code=status_code)


class BatchResponse(BaseModel):
    results: list[BatchItemResult]
    success_count: int = Field(description="Number of stops fetched successfully")
    failure_count: int = Field(description="Number of stops that failed")
    error: str | None = Field(default=None, description="Set when the request itself was rejected")


class BusArrivalResponse(BaseModel):
    """Single-stop arrival response returned by the tool layer."""

    bus_stop_code: str
    success: bool
    data: ArrivalPayload | None = None
    cached: bool | None = None
    error: str | None = None
    status_code: int | None = Field(
        default=None, description="400 for caller errors, upstream HTTP status otherwise"
    )


class DirectoryStatus(BaseModel):
    state: DirectoryState
    stop_count: int = 0
    age_seconds: float | None = None
    pages_fetched: int = 0
    complete: bool | None = Field(
        default=None, description="False when the last rebuild stopped on a failed page"
    )


class BusStopResult(BaseModel):
    bus_stop_code: str
    description: str
    road_name: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    score: float | None = Field(default=None, description="Match score 0-100 (search only)")


class GetBusStopResponse(BaseModel):
    found: bool
    stop: BusStopResult | None = None
    error: str | None = None


class SearchBusStopsResponse(BaseModel):
    stops: list[BusStopResult]
    count: int = Field(description="Number of stops returned")
    directory_size: int = Field(description="Stops in the directory that was searched")
    error: str | None = None

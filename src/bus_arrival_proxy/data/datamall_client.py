import logging

import httpx

from bus_arrival_proxy.data.config import ProxyConfig
from bus_arrival_proxy.errors import UpstreamError
from bus_arrival_proxy.models.datamall import ArrivalPayload, BusStopsEnvelope, StopsPage

logger = logging.getLogger(__name__)


class DataMallClient:
    """Async HTTP client for the LTA DataMall bus endpoints.

    The account key is supplied per call and forwarded verbatim in the
    ``AccountKey`` header; it is never validated locally.

    Usage:
        async with DataMallClient(config) as client:
            page = await client.fetch_stops_page(api_key, offset=0)
            arrival = await client.fetch_arrival(api_key, "83139")
    """

    def __init__(self, config: ProxyConfig):
        """Initialize the client.

        Args:
            config: Configuration with base URL, page size and timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "DataMallClient":
        """Enter async context - create HTTP client."""
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        await self.aclose()

    def open(self) -> None:
        """Create the underlying HTTP client if not already open."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"accept": "application/json"},
                timeout=self._config.http_timeout_seconds,
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def page_size(self) -> int:
        return self._config.page_size

    async def fetch_stops_page(self, api_key: str, offset: int) -> StopsPage:
        """Fetch one page of the BusStops listing.

        Args:
            api_key: DataMall account key.
            offset: Number of records to skip (multiple of the page size).

        Returns:
            StopsPage; ``is_last_page`` is set when the page is empty or short.

        Raises:
            RuntimeError: If client not initialized.
            UpstreamError: On a non-success status.
            httpx.HTTPError: If the request itself fails.
        """
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got {offset}")

        response = await self._get(
            self._config.bus_stops_url, api_key, params={"$skip": offset}
        )
        envelope = BusStopsEnvelope.model_validate(response.json())
        items = envelope.value or []
        return StopsPage(items=items, is_last_page=len(items) < self.page_size)

    async def fetch_arrival(self, api_key: str, stop_code: str) -> ArrivalPayload:
        """Fetch live arrivals for one stop.

        Returns:
            The upstream JSON object, unmodified.

        Raises:
            RuntimeError: If client not initialized.
            UpstreamError: On a non-success status.
            httpx.HTTPError: If the request itself fails.
        """
        response = await self._get(
            self._config.bus_arrival_url, api_key, params={"BusStopCode": stop_code}
        )
        return response.json()

    async def _get(self, url: str, api_key: str, params: dict) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        response = await self._client.get(url, params=params, headers={"AccountKey": api_key})
        if not response.is_success:
            logger.debug(f"DataMall {url} answered {response.status_code}")
            raise UpstreamError(
                status_code=response.status_code,
                raw_body=response.text,
                reason=response.reason_phrase,
            )
        return response

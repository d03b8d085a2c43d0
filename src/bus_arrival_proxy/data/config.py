from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProxyConfig(BaseSettings):
    """Configuration for DataMall access and cache horizons.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # used only when the caller does not pass a key of its own
    account_key: str | None = Field(default=None, alias="DATAMALL_ACCOUNT_KEY")
    base_url: str = Field(
        default="https://datamall2.mytransport.sg/ltaodataservice", alias="DATAMALL_BASE_URL"
    )
    bus_stops_path: str = "/BusStops"
    bus_arrival_path: str = "/v3/BusArrival"
    http_timeout_seconds: float | None = Field(default=None, alias="PROXY_HTTP_TIMEOUT")

    # reference directory
    page_size: int = Field(default=500, alias="PROXY_PAGE_SIZE")
    reference_ttl_seconds: float = Field(default=24 * 60 * 60, alias="PROXY_REFERENCE_TTL")
    max_directory_pages: int = Field(default=100, alias="PROXY_MAX_DIRECTORY_PAGES")

    # live arrivals
    arrival_ttl_seconds: float = Field(default=15, alias="PROXY_ARRIVAL_TTL")
    batch_max_size: int = Field(default=50, alias="PROXY_BATCH_MAX")
    batch_chunk_size: int = Field(default=50, alias="PROXY_BATCH_CHUNK_SIZE")

    @property
    def bus_stops_url(self) -> str:
        return self.base_url.rstrip("/") + self.bus_stops_path

    @property
    def bus_arrival_url(self) -> str:
        return self.base_url.rstrip("/") + self.bus_arrival_path


@lru_cache
def get_proxy_config() -> ProxyConfig:
    """Get proxy configuration (cached singleton).

    Returns:
        ProxyConfig with values from .env file or environment variables.
    """
    return ProxyConfig()

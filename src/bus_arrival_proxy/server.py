import argparse
import asyncio
import logging
from datetime import UTC, datetime

from pydantic import BaseModel

from bus_arrival_proxy.app import mcp
from bus_arrival_proxy.models.responses import DirectoryStatus

TRANSPORTS = ("stdio", "sse", "streamable-http")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    directory: DirectoryStatus


@mcp.tool()
def health() -> HealthResponse:
    """Check if the bus arrival proxy is running and healthy.

    Returns the server status, version, current timestamp and the state of
    the bus stop directory cache.
    """
    from bus_arrival_proxy import __version__
    from bus_arrival_proxy.services.proxy_service import directory_status

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        directory=directory_status(),
    )


async def run_warm_directory(api_key: str | None) -> None:
    """Prefetch the bus stop directory."""
    from bus_arrival_proxy.services import proxy_service

    try:
        status = await proxy_service.warm_directory(api_key)
    finally:
        await proxy_service.shutdown()

    print("\nDirectory ready:")
    print(f"  stops: {status.stop_count:,}")
    print(f"  pages: {status.pages_fetched}")
    if status.complete is False:
        print("  warning: a page failed, directory is partial")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="bus-arrival-proxy",
        description="Caching proxy for LTA DataMall bus arrivals",
    )
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="stdio",
        help="MCP transport to serve on (default: stdio)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    # warm-directory command
    warm_parser = subparsers.add_parser(
        "warm-directory",
        help="Fetch the full bus stop directory and report its size",
    )
    warm_parser.add_argument(
        "--api-key",
        default=None,
        help="DataMall account key (default: DATAMALL_ACCOUNT_KEY env var)",
    )

    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "warm-directory":
        asyncio.run(run_warm_directory(args.api_key))
    else:
        # Register tools, then run the MCP server
        import bus_arrival_proxy.tools  # noqa: F401

        mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()

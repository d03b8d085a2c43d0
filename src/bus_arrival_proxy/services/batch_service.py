"""Batch arrival lookups with bounded fan-out and per-stop failure isolation."""

import asyncio
import logging
from collections.abc import Sequence

from bus_arrival_proxy.errors import InputError, ProxyError
from bus_arrival_proxy.models.responses import BatchItemResult
from bus_arrival_proxy.services.arrival_service import ArrivalCache

logger = logging.getLogger(__name__)

BATCH_MAX_SIZE = 50
BATCH_CHUNK_SIZE = 50


class BatchOrchestrator:
    """Runs ArrivalCache lookups for many stops.

    Codes are split into chunks processed one after another; within a chunk
    every lookup runs concurrently and the chunk settles completely before the
    next one starts. Results keep input order.

    One semaphore sized to the chunk size is shared by every run, so
    concurrent batch requests together never have more than ``chunk_size``
    lookups in flight.
    """

    def __init__(
        self,
        arrivals: ArrivalCache,
        max_size: int = BATCH_MAX_SIZE,
        chunk_size: int = BATCH_CHUNK_SIZE,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._arrivals = arrivals
        self._max_size = max_size
        self._chunk_size = chunk_size
        self._semaphore = asyncio.Semaphore(chunk_size)

    def validate(self, stop_codes: Sequence[str]) -> list[str]:
        """Check batch shape before any upstream work.

        Raises:
            InputError: If the batch is not a list of 1..max_size non-empty codes.
        """
        if isinstance(stop_codes, str) or not isinstance(stop_codes, Sequence):
            raise InputError("busStopCodes array is required")
        if len(stop_codes) == 0:
            raise InputError("busStopCodes array is required")
        if len(stop_codes) > self._max_size:
            raise InputError(f"Maximum {self._max_size} bus stops per batch request")
        for index, code in enumerate(stop_codes):
            if not isinstance(code, str) or not code.strip():
                raise InputError(f"Bus stop code at position {index} is empty")
        return list(stop_codes)

    async def run(self, stop_codes: Sequence[str], api_key: str) -> list[BatchItemResult]:
        """Fetch arrivals for every code, one record per code.

        Individual failures become ``success=False`` records; only input
        shape violations raise.

        Raises:
            InputError: If ``stop_codes`` fails validation.
        """
        codes = self.validate(stop_codes)

        results: list[BatchItemResult] = []
        for start in range(0, len(codes), self._chunk_size):
            chunk = codes[start : start + self._chunk_size]
            chunk_results = await asyncio.gather(
                *(self._run_one(code, api_key) for code in chunk)
            )
            results.extend(chunk_results)

        failures = sum(1 for r in results if not r.success)
        logger.debug(
            f"Batch of {len(results)} bus stops: {len(results) - failures} ok, {failures} failed"
        )
        return results

    async def _run_one(self, stop_code: str, api_key: str) -> BatchItemResult:
        async with self._semaphore:
            try:
                result = await self._arrivals.get(stop_code, api_key)
            except ProxyError as e:
                return BatchItemResult.failed(stop_code, str(e), e.status_code)
            except Exception as e:
                logger.warning(f"Unexpected error for bus stop {stop_code} in batch: {e}")
                return BatchItemResult.failed(stop_code, str(e) or type(e).__name__)
        return BatchItemResult.ok(result)

"""Sequential chunked delivery with pacing and bounded retries."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterator, Protocol, Sequence

from .models import BatchResult, SyncResult

logger = logging.getLogger("timeclock.upload.batch")

DEFAULT_BATCH_SIZE = 100
PACING_DELAY_S = 0.5


class RecordTransport(Protocol):
    def send_one(self, records: Sequence[Any]) -> BatchResult: ...


@dataclass(frozen=True)
class RetryPolicy:
    """Retries a failed chunk when its result is marked retriable."""

    max_retries: int = 0
    backoff_base_s: float = 0.5
    backoff_cap_s: float = 4.0
    jitter_s: float = 0.15

    def delay(self, attempt: int) -> float:
        base = min(self.backoff_cap_s, self.backoff_base_s * (2 ** (attempt - 1)))
        return base + random.uniform(0.0, self.jitter_s)


NO_RETRY = RetryPolicy()


def chunk(records: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    for offset in range(0, len(records), size):
        yield records[offset : offset + size]


class BatchUploader:
    def __init__(
        self,
        retry: RetryPolicy | None = None,
        pacing_s: float = PACING_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retry = retry or NO_RETRY
        self.pacing_s = pacing_s
        self._sleep = sleep

    def send_in_batches(
        self,
        records: Sequence[Any],
        batch_size: int,
        transport: RecordTransport,
    ) -> SyncResult:
        batches = list(chunk(records, batch_size))
        result = SyncResult(total_records=len(records), batch_count=len(batches))
        logger.info("sending %d records in %d batches", len(records), len(batches))

        for index, batch in enumerate(batches):
            logger.info("sending batch %d of %d (%d records)", index + 1, len(batches), len(batch))
            outcome = self._send_with_retry(batch, transport)
            result.batch_results.append(outcome)
            result.sent += outcome.sent
            result.failed += outcome.failed

            if index < len(batches) - 1:
                self._sleep(self.pacing_s)

        result.message = f"Sent {result.sent} records, {result.failed} failed"
        if result.success:
            logger.info(result.message)
        else:
            logger.warning(result.message)
        return result

    def _send_with_retry(self, batch: Sequence[Any], transport: RecordTransport) -> BatchResult:
        attempt = 1
        outcome = transport.send_one(batch)
        while not outcome.success and outcome.retriable and attempt <= self.retry.max_retries:
            wait_for = self.retry.delay(attempt)
            logger.warning(
                "batch failed (%s); retry %d/%d in %.2fs",
                outcome.message,
                attempt,
                self.retry.max_retries,
                wait_for,
            )
            self._sleep(wait_for)
            attempt += 1
            outcome = transport.send_one(batch)
        return replace(outcome, attempts=attempt)

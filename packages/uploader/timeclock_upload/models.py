"""Result models for chunked record delivery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class BatchResult:
    success: bool
    sent: int
    failed: int
    message: str
    error: str | None = None
    response: Any | None = None
    status_code: int | None = None
    retriable: bool = False
    attempts: int = 1


@dataclass
class SyncResult:
    total_records: int = 0
    sent: int = 0
    failed: int = 0
    batch_count: int = 0
    batch_results: list[BatchResult] = field(default_factory=list)
    message: str = ""

    @property
    def success(self) -> bool:
        return self.failed == 0

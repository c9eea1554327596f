"""Batched delivery of attendance records to a remote collector."""

from .batch import BatchUploader, RecordTransport, RetryPolicy, chunk
from .http_transport import HttpRecordTransport
from .models import BatchResult, SyncResult

__all__ = [
    "BatchResult",
    "BatchUploader",
    "HttpRecordTransport",
    "RecordTransport",
    "RetryPolicy",
    "SyncResult",
    "chunk",
]

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "uploader"))

from timeclock_upload.batch import BatchUploader, RetryPolicy, chunk
from timeclock_upload.models import BatchResult


def ok(batch):
    return BatchResult(success=True, sent=len(batch), failed=0, message="ok")


def failed(batch, retriable=False):
    return BatchResult(success=False, sent=0, failed=len(batch), message="boom", error="boom", retriable=retriable)


class RecordingTransport:
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.batches = []

    def send_one(self, records):
        self.batches.append(list(records))
        if self.outcomes:
            return self.outcomes.pop(0)(records)
        return ok(records)


class ChunkTests(unittest.TestCase):
    def test_chunk_sizes(self):
        self.assertEqual([len(c) for c in chunk(list(range(250)), 100)], [100, 100, 50])

    def test_chunk_rejects_zero(self):
        with self.assertRaises(ValueError):
            list(chunk([1, 2], 0))


class BatchUploaderTests(unittest.TestCase):
    def setUp(self):
        self.sleeps = []
        self.uploader = BatchUploader(sleep=self.sleeps.append)

    def test_chunking_preserves_order(self):
        records = list(range(250))
        transport = RecordingTransport()
        result = self.uploader.send_in_batches(records, 100, transport)

        self.assertEqual([len(b) for b in transport.batches], [100, 100, 50])
        self.assertEqual([x for b in transport.batches for x in b], records)
        self.assertEqual(result.batch_count, 3)
        self.assertEqual(result.sent, 250)
        self.assertTrue(result.success)
        self.assertEqual(result.message, "Sent 250 records, 0 failed")

    def test_pacing_between_chunks_only(self):
        self.uploader.send_in_batches(list(range(250)), 100, RecordingTransport())
        self.assertEqual(self.sleeps, [0.5, 0.5])

    def test_partial_failure_accounting(self):
        transport = RecordingTransport([ok, failed, ok])
        result = self.uploader.send_in_batches(list(range(250)), 100, transport)

        self.assertEqual(len(transport.batches), 3)
        self.assertEqual(result.sent, 150)
        self.assertEqual(result.failed, 100)
        self.assertFalse(result.success)
        self.assertEqual([r.success for r in result.batch_results], [True, False, True])
        self.assertEqual(result.message, "Sent 150 records, 100 failed")

    def test_empty_input_sends_nothing(self):
        transport = RecordingTransport()
        result = self.uploader.send_in_batches([], 100, transport)
        self.assertEqual(transport.batches, [])
        self.assertEqual(result.batch_count, 0)
        self.assertTrue(result.success)
        self.assertEqual(self.sleeps, [])

    def test_single_chunk_has_no_pacing(self):
        self.uploader.send_in_batches([1, 2, 3], 100, RecordingTransport())
        self.assertEqual(self.sleeps, [])


class RetryTests(unittest.TestCase):
    def test_retriable_failure_is_retried(self):
        sleeps = []
        uploader = BatchUploader(retry=RetryPolicy(max_retries=3, jitter_s=0.0), sleep=sleeps.append)
        transport = RecordingTransport([lambda b: failed(b, retriable=True), ok])
        result = uploader.send_in_batches([1, 2], 10, transport)

        self.assertEqual(len(transport.batches), 2)
        self.assertTrue(result.success)
        self.assertEqual(result.batch_results[0].attempts, 2)
        self.assertEqual(sleeps, [0.5])

    def test_retries_are_bounded(self):
        sleeps = []
        uploader = BatchUploader(retry=RetryPolicy(max_retries=2, jitter_s=0.0), sleep=sleeps.append)
        transport = RecordingTransport([lambda b: failed(b, retriable=True)] * 5)
        result = uploader.send_in_batches([1, 2], 10, transport)

        self.assertEqual(len(transport.batches), 3)
        self.assertEqual(result.failed, 2)
        self.assertEqual(result.batch_results[0].attempts, 3)
        self.assertEqual(sleeps, [0.5, 1.0])

    def test_non_retriable_failure_is_not_retried(self):
        uploader = BatchUploader(retry=RetryPolicy(max_retries=3), sleep=lambda _s: None)
        transport = RecordingTransport([failed])
        result = uploader.send_in_batches([1, 2], 10, transport)
        self.assertEqual(len(transport.batches), 1)
        self.assertEqual(result.batch_results[0].attempts, 1)

    def test_backoff_is_capped(self):
        policy = RetryPolicy(max_retries=10, backoff_base_s=0.5, backoff_cap_s=4.0, jitter_s=0.0)
        self.assertEqual([policy.delay(n) for n in (1, 2, 3, 4, 5)], [0.5, 1.0, 2.0, 4.0, 4.0])


if __name__ == "__main__":
    unittest.main()

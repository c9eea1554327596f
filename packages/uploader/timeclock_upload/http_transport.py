"""HTTP delivery of attendance batches to the remote collector."""

from __future__ import annotations

import http.client
import json
import logging
import os
import ssl
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from .models import BatchResult

try:
    import certifi
except Exception:  # pragma: no cover - fallback when optional dependency unavailable
    certifi = None

logger = logging.getLogger("timeclock.upload.http")

RETRIABLE_STATUS = frozenset({408, 429})

# Bad URLs fail the same way on every attempt.
_PERMANENT_ERRORS = (ValueError, http.client.InvalidURL)


def _build_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Create TLS context for collector calls with explicit CA handling."""
    if not verify:
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("TIMECLOCK_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    if certifi is not None:
        return ssl.create_default_context(cafile=certifi.where())

    return ssl.create_default_context()


def _record_payload(record: Any) -> Any:
    to_payload = getattr(record, "to_payload", None)
    if callable(to_payload):
        return to_payload()
    return record


def _is_retriable_status(code: int) -> bool:
    return code in RETRIABLE_STATUS or code >= 500


def _decode_json(raw: bytes) -> Any | None:
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


class HttpRecordTransport:
    """Posts one chunk per request; a 2xx status is the only success signal."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_s: int = 30,
        endpoint_path: str = "/attendance",
        health_path: str = "/health",
        verify_tls: bool = True,
        device_info: dict[str, Any] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.endpoint_path = endpoint_path
        self.health_path = health_path
        self.verify_tls = verify_tls
        self.device_info = dict(device_info or {})
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        if not verify_tls:
            logger.warning("TLS certificate verification is disabled for %s", self.base_url)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self, json_body: bool = False) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _open(self, request: urllib.request.Request, timeout_s: int):
        return urllib.request.urlopen(request, timeout=timeout_s, context=_build_ssl_context(self.verify_tls))

    def send_one(self, records: Sequence[Any]) -> BatchResult:
        count = len(records)
        if count == 0:
            return BatchResult(success=False, sent=0, failed=0, message="No records to send")

        body = {
            "records": [_record_payload(r) for r in records],
            "device_info": {**self.device_info, "synced_at": self._clock().isoformat()},
        }
        data_bytes = json.dumps(body, default=str).encode("utf-8")
        logger.info("sending %d attendance records to %s", count, self._url(self.endpoint_path))

        try:
            request = urllib.request.Request(
                self._url(self.endpoint_path),
                data=data_bytes,
                headers=self._headers(json_body=True),
                method="POST",
            )
            with self._open(request, self.timeout_s) as resp:
                status = int(getattr(resp, "status", 200))
                data = _decode_json(resp.read())
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
            logger.error("collector rejected %d records: status=%s body=%s", count, exc.code, error_body[:500])
            return BatchResult(
                success=False,
                sent=0,
                failed=count,
                message=f"Failed to send records: {exc.code}",
                error=error_body,
                status_code=exc.code,
                retriable=_is_retriable_status(exc.code),
            )
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as exc:
            logger.error("exception while sending %d records: %s", count, exc)
            return BatchResult(
                success=False,
                sent=0,
                failed=count,
                message=f"Exception: {exc}",
                error=str(exc),
                retriable=not isinstance(exc, _PERMANENT_ERRORS),
            )

        if not 200 <= status < 300:
            logger.error("collector returned status=%s for %d records", status, count)
            return BatchResult(
                success=False,
                sent=0,
                failed=count,
                message=f"Failed to send records: {status}",
                error=json.dumps(data) if data is not None else None,
                status_code=status,
                retriable=_is_retriable_status(status),
            )

        message = "Records sent successfully"
        if isinstance(data, dict) and data.get("message"):
            message = str(data["message"])
        logger.info("collector accepted %d records", count)
        return BatchResult(
            success=True,
            sent=count,
            failed=0,
            message=message,
            response=data,
            status_code=status,
        )

    def test_connection(self) -> bool:
        try:
            request = urllib.request.Request(self._url(self.health_path), headers=self._headers(), method="GET")
            with self._open(request, 10) as resp:
                status = int(getattr(resp, "status", 200))
        except urllib.error.HTTPError as exc:
            logger.warning("remote API connection test failed: %s", exc.code)
            return False
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as exc:
            logger.error("remote API connection test exception: %s", exc)
            return False

        ok = 200 <= status < 300
        if ok:
            logger.info("remote API connection test successful")
        else:
            logger.warning("remote API connection test failed: %s", status)
        return ok

    def get_sync_status(self, params: dict[str, Any] | None = None) -> dict[str, Any] | None:
        query = urllib.parse.urlencode(params or {})
        url = self._url("/attendance/sync-status") + (f"?{query}" if query else "")
        try:
            request = urllib.request.Request(url, headers=self._headers(), method="GET")
            with self._open(request, self.timeout_s) as resp:
                data = _decode_json(resp.read())
        except (urllib.error.URLError, OSError, http.client.HTTPException, ValueError) as exc:
            logger.error("error getting sync status: %s", exc)
            return None
        return data if isinstance(data, dict) else None

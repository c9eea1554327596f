"""End-to-end sync: read punches from the time clock and ship them to the collector."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timeclock_device import AttendanceRecord, DeviceClient, ProtocolDeviceClient
from timeclock_upload import BatchUploader, HttpRecordTransport, RecordTransport, RetryPolicy, SyncResult

from .config import AppConfig, ConfigError, require_device, require_remote_api
from .logging_setup import current_sync_id, new_sync_id, sync_context

logger = logging.getLogger("timeclock.sync")

SAMPLE_SIZE = 5


@dataclass
class SyncReport:
    sync_id: str = ""
    connected: bool = False
    records_read: int = 0
    sync: SyncResult | None = None
    cleared: bool | None = None
    dry_run: bool = False
    success: bool = False
    message: str = ""
    sample: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.sync is not None:
            data["sync"]["success"] = self.sync.success
        return data


def resolve_timezone(name: str) -> tzinfo:
    if name.strip().upper() in ("UTC", "Z", ""):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown device timezone: {name!r}") from exc


def build_device_client(cfg: AppConfig) -> ProtocolDeviceClient:
    return ProtocolDeviceClient(
        host=cfg.device.ip,
        port=cfg.device.port,
        timeout_s=cfg.device.timeout_s,
        strict_reply_check=cfg.device.strict_reply_check,
        tz=resolve_timezone(cfg.device.timezone),
    )


def build_record_transport(cfg: AppConfig) -> HttpRecordTransport:
    return HttpRecordTransport(
        base_url=cfg.remote_api.url,
        api_key=cfg.remote_api.api_key,
        timeout_s=cfg.remote_api.timeout_s,
        endpoint_path=cfg.remote_api.endpoint_path,
        health_path=cfg.remote_api.health_path,
        verify_tls=cfg.remote_api.verify_tls,
        device_info={"ip": cfg.device.ip, "port": cfg.device.port},
    )


def build_retry_policy(cfg: AppConfig) -> RetryPolicy:
    if not cfg.sync.retry_failed:
        return RetryPolicy(max_retries=0)
    return RetryPolicy(max_retries=cfg.sync.max_retries)


class SyncService:
    def __init__(
        self,
        cfg: AppConfig,
        client: DeviceClient | None = None,
        transport: RecordTransport | None = None,
        uploader: BatchUploader | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = cfg
        self._client = client
        self._transport = transport
        self.uploader = uploader or BatchUploader(
            retry=build_retry_policy(cfg),
            pacing_s=cfg.sync.pacing_ms / 1000,
            sleep=sleep,
        )
        self._events: list[dict[str, Any]] = []

    @property
    def client(self) -> DeviceClient:
        if self._client is None:
            self._client = build_device_client(self.cfg)
        return self._client

    @property
    def transport(self) -> RecordTransport:
        if self._transport is None:
            self._transport = build_record_transport(self.cfg)
        return self._transport

    def recent_events(self, limit: int = 200) -> list[dict[str, Any]]:
        return self._events[-limit:]

    def _log_event(self, event: str, **fields: Any) -> None:
        row = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event}
        sync_id = current_sync_id()
        if sync_id:
            row["sync_id"] = sync_id
        row.update(fields)
        self._events.append(row)
        if len(self._events) > 1000:
            self._events = self._events[-1000:]
        logger.debug("%s %s", event, fields, extra={"event": event})

    def run(self, clear: bool | None = None, batch_size: int | None = None, dry_run: bool = False) -> SyncReport:
        with sync_context(new_sync_id()) as sync_id:
            report = self._run(clear, batch_size, dry_run)
            report.sync_id = sync_id
            return report

    def _run(self, clear: bool | None, batch_size: int | None, dry_run: bool) -> SyncReport:
        require_device(self.cfg)
        size = self.cfg.sync.batch_size if batch_size is None else batch_size
        if size < 1:
            raise ConfigError(f"Batch size must be at least 1, got {size}")
        if not dry_run:
            require_remote_api(self.cfg)
        client = self.client
        transport = None if dry_run else self.transport

        should_clear = self.cfg.sync.auto_clear_device if clear is None else clear
        report = SyncReport(dry_run=dry_run)

        self._log_event("sync_start", device=self.cfg.device.ip, batch_size=size, clear=should_clear)
        try:
            if not client.connect():
                report.message = f"Failed to connect to device {self.cfg.device.ip}:{self.cfg.device.port}"
                logger.error(report.message)
                self._log_event("connect_error")
                return report
            report.connected = True
            self._log_event("connect_ok")

            records = client.get_attendance()
            report.records_read = len(records)
            report.sample = [_sample_row(r) for r in records[:SAMPLE_SIZE]]
            self._log_event("records_read", count=len(records))

            if not records:
                report.success = True
                report.message = "No attendance records found on device"
                logger.warning(report.message)
                return report

            if dry_run:
                report.success = True
                report.message = f"Dry run: {len(records)} records read, nothing sent"
                return report

            result = self.uploader.send_in_batches(records, size, transport)
            report.sync = result
            report.success = result.success
            report.message = result.message
            self._log_event("upload_done", sent=result.sent, failed=result.failed, batches=result.batch_count)

            if should_clear:
                if result.success:
                    report.cleared = client.clear_attendance()
                    self._log_event("clear_done", acknowledged=report.cleared)
                    if not report.cleared:
                        logger.error("failed to clear attendance records from device")
                else:
                    report.cleared = False
                    logger.warning("device not cleared because %d records failed to upload", result.failed)
            return report
        finally:
            client.disconnect()
            self._log_event("disconnect")

    def test_connections(self) -> dict[str, bool]:
        require_device(self.cfg)
        client = self.client
        device_ok = client.connect()
        if device_ok:
            client.disconnect()
        self._log_event("test_device", ok=device_ok)

        api_ok = False
        if self.cfg.remote_api.url:
            api_ok = bool(getattr(self.transport, "test_connection", lambda: False)())
        else:
            logger.warning("remote API URL not configured; skipping API check")
        self._log_event("test_remote_api", ok=api_ok)
        return {"device": device_ok, "remote_api": api_ok}


def _sample_row(record: AttendanceRecord) -> dict[str, Any]:
    return record.to_payload()

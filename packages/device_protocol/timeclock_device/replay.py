"""Replay/analysis utilities for captured device datagrams."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path

from .codec import Command, decode_attendance_reply, parse_reply_header, verify_frame


_HEX_CLEAN = re.compile(r"[^0-9a-fA-F]")


@dataclass(frozen=True)
class ReplayEvent:
    line: int
    direction: str
    payload: bytes


@dataclass
class ReplayReport:
    total_events: int = 0
    host_to_device_events: int = 0
    device_to_host_events: int = 0
    connect_count: int = 0
    exit_count: int = 0
    checksum_errors: int = 0
    attendance_records: int = 0
    raw_bytes_total: int = 0
    command_counts: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class ReplayRunner:
    @staticmethod
    def _decode_hex(value: str) -> bytes:
        cleaned = _HEX_CLEAN.sub("", value)
        if len(cleaned) % 2 == 1:
            cleaned = cleaned[:-1]
        if not cleaned:
            return b""
        return bytes.fromhex(cleaned)

    def _parse_line(self, line_no: int, line: str) -> ReplayEvent | None:
        stripped = line.strip()
        if not stripped:
            return None
        obj = json.loads(stripped)
        direction = obj.get("dir") or obj.get("direction") or "unknown"
        hex_value = obj.get("payload_hex") or obj.get("hex") or ""
        return ReplayEvent(line=line_no, direction=direction, payload=self._decode_hex(str(hex_value)))

    def parse(self, capture_path: Path) -> list[ReplayEvent]:
        events: list[ReplayEvent] = []
        for idx, line in enumerate(capture_path.read_text(encoding="utf-8").splitlines(), start=1):
            event = self._parse_line(idx, line)
            if event is not None:
                events.append(event)
        return events

    def run(self, capture_path: Path, strict: bool = True) -> ReplayReport:
        events = self.parse(capture_path)
        report = ReplayReport(total_events=len(events))
        awaiting_attendance = False

        for event in events:
            payload = event.payload
            report.raw_bytes_total += len(payload)

            if event.direction == "host_to_device":
                report.host_to_device_events += 1
                header = parse_reply_header(payload)
                if header is None:
                    continue
                if not verify_frame(payload):
                    report.checksum_errors += 1
                    report.errors.append(f"bad_checksum:line{event.line}")
                try:
                    name = Command(header.command).name
                except ValueError:
                    name = f"CMD_{header.command}"
                report.command_counts[name] = report.command_counts.get(name, 0) + 1
                if header.command == Command.CONNECT:
                    report.connect_count += 1
                elif header.command == Command.EXIT:
                    report.exit_count += 1
                awaiting_attendance = header.command == Command.GET_ATTENDANCE

            elif event.direction == "device_to_host":
                report.device_to_host_events += 1
                if awaiting_attendance:
                    report.attendance_records += len(decode_attendance_reply(payload))
                    awaiting_attendance = False

        if strict:
            if report.connect_count < 1:
                report.errors.append("missing_connect")
            if report.exit_count < 1:
                report.errors.append("missing_exit")

        return report

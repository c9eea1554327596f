"""Attendance extraction bracketed by device disable/enable."""

from __future__ import annotations

import logging
from datetime import timezone, tzinfo
from typing import Protocol

from .codec import Command, decode_attendance_reply
from .models import AttendanceRecord
from .session import DeviceSession

logger = logging.getLogger("timeclock.device.reader")


class DeviceClient(Protocol):
    """Capability shared by anything that can hand out attendance records."""

    def connect(self) -> bool: ...

    def disconnect(self) -> bool: ...

    def get_attendance(self) -> list[AttendanceRecord]: ...

    def clear_attendance(self) -> bool: ...


class AttendanceReader:
    """Runs bulk commands with the terminal locked, and always unlocks it."""

    def __init__(self, session: DeviceSession, tz: tzinfo = timezone.utc) -> None:
        self.session = session
        self.tz = tz

    def get_attendance(self) -> list[AttendanceRecord]:
        self.session.disable_device()
        try:
            reply = self.session.send_command(Command.GET_ATTENDANCE)
            if reply is None:
                logger.warning("no attendance reply from device")
                return []
            records = decode_attendance_reply(reply, tz=self.tz)
            logger.info("decoded %d attendance records from %d bytes", len(records), len(reply))
            return records
        finally:
            self._enable()

    def clear_attendance(self) -> bool:
        self.session.disable_device()
        try:
            reply = self.session.send_command(Command.CLEAR_ATTENDANCE)
            if reply is None:
                logger.warning("no reply to CLEAR_ATTENDANCE")
            else:
                logger.info("device acknowledged CLEAR_ATTENDANCE")
            return reply is not None
        finally:
            self._enable()

    def _enable(self) -> None:
        if not self.session.enable_device():
            logger.error("device did not acknowledge ENABLE_DEVICE")


class ProtocolDeviceClient:
    """Device client driving the UDP protocol directly."""

    def __init__(
        self,
        host: str,
        port: int = 4370,
        timeout_s: float = 10.0,
        strict_reply_check: bool = False,
        tz: tzinfo = timezone.utc,
        session: DeviceSession | None = None,
    ) -> None:
        self.session = session or DeviceSession(
            host=host,
            port=port,
            timeout_s=timeout_s,
            strict_reply_check=strict_reply_check,
        )
        self.reader = AttendanceReader(self.session, tz=tz)

    @property
    def connected(self) -> bool:
        return self.session.connected

    def connect(self) -> bool:
        return self.session.connect()

    def disconnect(self) -> bool:
        return self.session.disconnect()

    def get_attendance(self) -> list[AttendanceRecord]:
        return self.reader.get_attendance()

    def clear_attendance(self) -> bool:
        return self.reader.clear_attendance()

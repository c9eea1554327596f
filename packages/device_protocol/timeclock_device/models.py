"""Typed models for device session state and decoded attendance data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    BUSY = "Busy"


@dataclass
class Session:
    device_address: tuple[str, int]
    session_id: int = 0
    reply_id: int = 0
    connected: bool = False

    def reset(self) -> None:
        self.session_id = 0
        self.reply_id = 0
        self.connected = False

    def advance_reply_id(self) -> None:
        self.reply_id = (self.reply_id + 1) % 0x10000


@dataclass(frozen=True)
class ReplyHeader:
    command: int
    checksum: int
    session_id: int
    reply_id: int


@dataclass(frozen=True)
class AttendanceRecord:
    user_id: str
    timestamp: datetime
    verify_type: str
    status: str
    raw_timestamp: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "timestamp": self.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            "verify_type": self.verify_type,
            "status": self.status,
            "raw_timestamp": self.raw_timestamp,
        }

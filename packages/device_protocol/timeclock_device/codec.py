"""Frame encoding, checksum, and attendance record decoding for UDP time clocks."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from enum import IntEnum

from .models import AttendanceRecord, ReplyHeader

logger = logging.getLogger("timeclock.device.codec")

HEADER = struct.Struct("<HHHH")
HEADER_SIZE = HEADER.size
RECORD_SIZE = 40


class Command(IntEnum):
    CONNECT = 1000
    EXIT = 1001
    ENABLE_DEVICE = 1002
    DISABLE_DEVICE = 1003
    GET_ATTENDANCE = 13
    CLEAR_ATTENDANCE = 14


VERIFY_TYPES: dict[int, str] = {
    0: "Password",
    1: "Fingerprint",
    2: "Card",
    3: "Fingerprint and Password",
    4: "Fingerprint and Card",
    15: "Face",
}

STATUSES: dict[int, str] = {
    0: "Check In",
    1: "Check Out",
    2: "Break Out",
    3: "Break In",
    4: "Overtime In",
    5: "Overtime Out",
}

UNKNOWN = "Unknown"


def checksum16(buf: bytes) -> int:
    """One's-complement sum of little-endian words, odd tail byte added as-is."""
    total = 0
    even = len(buf) - (len(buf) % 2)
    for (word,) in struct.iter_unpack("<H", buf[:even]):
        total += word
    if len(buf) % 2:
        total += buf[-1]

    while total > 0xFFFF:
        total = (total >> 16) + (total & 0xFFFF)

    return ~total & 0xFFFF


@dataclass(frozen=True)
class CommandFrame:
    command: int
    checksum: int
    session_id: int
    reply_id: int
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        return HEADER.pack(self.command, self.checksum, self.session_id, self.reply_id) + self.payload


def build_frame(command: int, session_id: int, reply_id: int, payload: bytes = b"") -> CommandFrame:
    unsigned = HEADER.pack(int(command), 0, session_id, reply_id) + payload
    return CommandFrame(
        command=int(command),
        checksum=checksum16(unsigned),
        session_id=session_id,
        reply_id=reply_id,
        payload=bytes(payload),
    )


def encode(command: int, session_id: int, reply_id: int, payload: bytes = b"") -> bytes:
    return build_frame(command, session_id, reply_id, payload).to_bytes()


def verify_frame(frame: bytes) -> bool:
    """Check the checksum embedded in a full frame."""
    if len(frame) < HEADER_SIZE:
        return False
    command, checksum, session_id, reply_id = HEADER.unpack_from(frame)
    unsigned = HEADER.pack(command, 0, session_id, reply_id) + frame[HEADER_SIZE:]
    return checksum16(unsigned) == checksum


def parse_reply_header(reply: bytes) -> ReplyHeader | None:
    if len(reply) < HEADER_SIZE:
        return None
    return ReplyHeader(*HEADER.unpack_from(reply))


def verify_type_name(code: int) -> str:
    return VERIFY_TYPES.get(code, UNKNOWN)


def status_name(code: int) -> str:
    return STATUSES.get(code, UNKNOWN)


def decode_record(chunk: bytes, tz: tzinfo = timezone.utc) -> AttendanceRecord:
    if len(chunk) < RECORD_SIZE:
        raise ValueError(f"Attendance record must be {RECORD_SIZE} bytes, got {len(chunk)}")
    user_id = chunk[0:9].split(b"\x00", 1)[0].decode("utf-8")
    (raw_timestamp,) = struct.unpack_from("<I", chunk, 27)
    return AttendanceRecord(
        user_id=user_id,
        timestamp=datetime.fromtimestamp(raw_timestamp, tz=tz),
        verify_type=verify_type_name(chunk[26]),
        status=status_name(chunk[31]),
        raw_timestamp=raw_timestamp,
    )


def decode_attendance_reply(reply: bytes, tz: tzinfo = timezone.utc) -> list[AttendanceRecord]:
    body = reply[HEADER_SIZE:]
    records: list[AttendanceRecord] = []
    for index in range(len(body) // RECORD_SIZE):
        chunk = body[index * RECORD_SIZE : (index + 1) * RECORD_SIZE]
        try:
            records.append(decode_record(chunk, tz=tz))
        except (ValueError, OverflowError, OSError) as exc:
            logger.warning("skipping attendance record %d: %s", index, exc)

    tail = len(body) % RECORD_SIZE
    if tail:
        logger.debug("discarding %d trailing bytes of attendance reply", tail)
    return records

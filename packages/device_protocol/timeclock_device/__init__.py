"""Device protocol package for UDP biometric time clocks."""

from .codec import Command, checksum16, decode_attendance_reply, encode
from .models import AttendanceRecord, ReplyHeader, Session, SessionState
from .reader import AttendanceReader, DeviceClient, ProtocolDeviceClient
from .replay import ReplayEvent, ReplayReport, ReplayRunner
from .session import DeviceSession
from .transport import DatagramTransport

__all__ = [
    "AttendanceReader",
    "AttendanceRecord",
    "Command",
    "DatagramTransport",
    "DeviceClient",
    "DeviceSession",
    "ProtocolDeviceClient",
    "ReplayEvent",
    "ReplayReport",
    "ReplayRunner",
    "ReplyHeader",
    "Session",
    "SessionState",
    "checksum16",
    "decode_attendance_reply",
    "encode",
]

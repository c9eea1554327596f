"""Stateful command session with a UDP time clock."""

from __future__ import annotations

import logging
import socket
import struct

from .codec import Command, encode, parse_reply_header
from .models import Session, SessionState
from .transport import DatagramTransport

logger = logging.getLogger("timeclock.device.session")


def _command_name(command: int) -> str:
    try:
        return Command(command).name
    except ValueError:
        return str(command)


class DeviceSession:
    """Owns one transport and the session/reply identifiers for a single device.

    One command is in flight at a time. Transport failures are reported as
    ``False``/``None`` and never raised to the caller.
    """

    def __init__(
        self,
        host: str,
        port: int = 4370,
        timeout_s: float = 10.0,
        strict_reply_check: bool = False,
        transport: DatagramTransport | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout_s = timeout_s
        self.strict_reply_check = strict_reply_check
        self.transport = transport or DatagramTransport()
        self.session = Session(device_address=(host, port))
        self.state = SessionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.session.connected

    def connect(self) -> bool:
        if self.session.connected:
            self.disconnect()

        self.session = Session(device_address=(self.host, self.port))
        self.state = SessionState.CONNECTING
        try:
            self.transport.open(
                host=self.host,
                port=self.port,
                send_timeout_s=self.timeout_s,
                recv_timeout_s=self.timeout_s,
            )
        except OSError as exc:
            logger.error("cannot open transport to %s:%s: %s", self.host, self.port, exc)
            self._teardown()
            return False

        reply = self._exchange(Command.CONNECT)
        if reply is None or len(reply) < 8:
            logger.error("no valid CONNECT reply from %s:%s", self.host, self.port)
            self._teardown()
            return False

        (self.session.session_id,) = struct.unpack_from("<H", reply, 4)
        self.session.connected = True
        self.state = SessionState.CONNECTED
        logger.info(
            "connected to %s:%s session_id=%d",
            self.host,
            self.port,
            self.session.session_id,
        )
        return True

    def disconnect(self) -> bool:
        try:
            if self.session.connected and self.transport.is_open:
                frame = encode(Command.EXIT, self.session.session_id, self.session.reply_id)
                self.transport.send(frame)
                self.session.advance_reply_id()
        except Exception as exc:
            logger.warning("EXIT to %s:%s failed: %s", self.host, self.port, exc)
        finally:
            self._teardown()
        logger.info("disconnected from %s:%s", self.host, self.port)
        return True

    def send_command(self, command: int, payload: bytes = b"") -> bytes | None:
        if not self.session.connected:
            logger.warning("%s skipped: session is not connected", _command_name(command))
            return None
        return self._exchange(command, payload)

    def enable_device(self) -> bool:
        return self.send_command(Command.ENABLE_DEVICE) is not None

    def disable_device(self) -> bool:
        return self.send_command(Command.DISABLE_DEVICE) is not None

    def _exchange(self, command: int, payload: bytes = b"") -> bytes | None:
        if self.state == SessionState.BUSY:
            raise RuntimeError("A device command is already in flight")
        if not self.transport.is_open:
            return None

        name = _command_name(command)
        sent_reply_id = self.session.reply_id
        frame = encode(command, self.session.session_id, sent_reply_id, payload)
        previous = self.state
        self.state = SessionState.BUSY

        try:
            try:
                self.transport.send(frame)
            except OSError as exc:
                logger.error("sending %s failed: %s", name, exc)
                self._teardown()
                return None
            self.session.advance_reply_id()

            try:
                reply = self.transport.receive(timeout_s=self.timeout_s)
            except socket.timeout:
                logger.warning("%s timed out after %.1fs", name, self.timeout_s)
                return None
            except OSError as exc:
                logger.error("receiving %s reply failed: %s", name, exc)
                self._teardown()
                return None
        finally:
            # Teardown already moved the state to DISCONNECTED.
            if self.state == SessionState.BUSY:
                self.state = previous

        return self._correlate(name, reply, sent_reply_id)

    def _correlate(self, name: str, reply: bytes, sent_reply_id: int) -> bytes | None:
        header = parse_reply_header(reply)
        if header is None or header.reply_id == sent_reply_id:
            return reply
        logger.warning(
            "%s reply id mismatch: sent=%d received=%d",
            name,
            sent_reply_id,
            header.reply_id,
        )
        if self.strict_reply_check:
            return None
        return reply

    def _teardown(self) -> None:
        try:
            self.transport.close()
        except OSError as exc:
            logger.debug("closing transport failed: %s", exc)
        self.session.reset()
        self.state = SessionState.DISCONNECTED

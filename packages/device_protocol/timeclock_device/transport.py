"""UDP datagram transport abstraction for time clock communication."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any

MAX_DATAGRAM = 65535


@dataclass
class DatagramConfig:
    host: str
    port: int = 4370
    send_timeout_s: float = 10.0
    recv_timeout_s: float = 10.0


class DatagramTransport:
    """Thin wrapper over a UDP socket addressed to one device."""

    def __init__(self) -> None:
        self._sock: Any | None = None
        self.config: DatagramConfig | None = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self, host: str, port: int = 4370, send_timeout_s: float = 10.0, recv_timeout_s: float = 10.0) -> None:
        if self.is_open:
            return
        self.config = DatagramConfig(host=host, port=port, send_timeout_s=send_timeout_s, recv_timeout_s=recv_timeout_s)
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def send(self, payload: bytes) -> int:
        if not self.is_open or self.config is None:
            raise RuntimeError("Datagram transport is not open")
        self._sock.settimeout(max(self.config.send_timeout_s, 0.001))
        return int(self._sock.sendto(payload, (self.config.host, self.config.port)))

    def receive(self, max_len: int = MAX_DATAGRAM, timeout_s: float | None = None) -> bytes:
        """Block for one datagram. Raises socket.timeout when nothing arrives."""
        if not self.is_open or self.config is None:
            raise RuntimeError("Datagram transport is not open")
        wait = self.config.recv_timeout_s if timeout_s is None else timeout_s
        self._sock.settimeout(max(wait, 0.001))
        data, _addr = self._sock.recvfrom(max_len)
        return bytes(data)

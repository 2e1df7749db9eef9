"""
Byte-stream sessions to the ESP32: Bluetooth RFCOMM socket or serial port.

Every failure (connect, write) surfaces as OSError; pyserial's
SerialException is an OSError subclass.
"""

import logging
import socket
from typing import Optional

import serial

logger = logging.getLogger(__name__)


class Session:
    """One open, ordered byte stream to the peer."""

    def write(self, data: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release the connection. Idempotent, never raises."""
        raise NotImplementedError


class Transport:
    """Opens sessions to a peer address."""

    def open(self, address: str) -> Session:
        """Connect (blocking). Raises OSError on failure."""
        raise NotImplementedError


class SocketSession(Session):
    def __init__(self, sock: socket.socket) -> None:
        self._sock: Optional[socket.socket] = sock

    def write(self, data: bytes) -> None:
        if self._sock is None:
            raise OSError("session closed")
        self._sock.sendall(data)

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.debug("RFCOMM close error: %s", e)
        self._sock = None


class RfcommTransport(Transport):
    """
    Bluetooth Classic SPP over an RFCOMM socket (Linux/BlueZ).

    address is the peer MAC, e.g. "24:6F:28:AA:BB:CC".
    """

    def __init__(self, channel: int = 1, timeout: float = 5.0) -> None:
        self._channel = channel
        self._timeout = timeout

    def open(self, address: str) -> Session:
        af = getattr(socket, "AF_BLUETOOTH", None)
        proto = getattr(socket, "BTPROTO_RFCOMM", None)
        if af is None or proto is None:
            raise OSError("RFCOMM sockets not supported on this platform")
        sock = socket.socket(af, socket.SOCK_STREAM, proto)
        sock.settimeout(self._timeout)
        try:
            sock.connect((address, self._channel))
        except OSError:
            sock.close()
            raise
        return SocketSession(sock)


class SerialSession(Session):
    def __init__(self, port: serial.Serial) -> None:
        self._port: Optional[serial.Serial] = port

    def write(self, data: bytes) -> None:
        if self._port is None:
            raise OSError("session closed")
        self._port.write(data)
        self._port.flush()

    def close(self) -> None:
        if self._port is None:
            return
        try:
            self._port.close()
        except OSError as e:
            logger.debug("Serial close error: %s", e)
        self._port = None


class SerialTransport(Transport):
    """
    Serial port session, e.g. /dev/rfcomm0 bound with `rfcomm bind`.

    address is the port device path.
    """

    def __init__(self, baudrate: int = 115200, timeout: float = 5.0) -> None:
        self._baudrate = baudrate
        self._timeout = timeout

    def open(self, address: str) -> Session:
        port = serial.Serial(
            address,
            self._baudrate,
            timeout=self._timeout,
            write_timeout=self._timeout,
        )
        return SerialSession(port)


def create_transport(kind: str, channel: int, baudrate: int, timeout: float) -> Transport:
    """Build the transport named by kind ("rfcomm" or "serial")."""
    if kind == "rfcomm":
        return RfcommTransport(channel=channel, timeout=timeout)
    if kind == "serial":
        return SerialTransport(baudrate=baudrate, timeout=timeout)
    raise ValueError("unknown transport: %r" % kind)

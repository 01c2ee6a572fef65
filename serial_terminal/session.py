"""Serial session engine.

Owns the open port, frames inbound bytes into display lines, encodes outbound
input, keeps connection state and traffic counters, and hands every formatted
line to a Sink.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import Callable, List, Optional

from .codec import DisplayFormat, FormatError, NonAsciiInputError, decode_inbound, encode_outbound
from .framer import ByteFramer
from .state import ConnectionState, SessionState, SessionStats
from .transport import PortConfig, PortInfo, SerialTransport, TransportError, TransportHandle

_logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class LineKind(str, Enum):
    info = "info"
    error = "error"
    success = "success"
    warning = "warning"
    tx = "tx"
    rx = "rx"


_ARROWS = {LineKind.tx: "→", LineKind.rx: "←"}


@dataclass(frozen=True)
class TerminalLine:
    timestamp: datetime
    kind: LineKind
    text: str

    @property
    def loggable(self) -> bool:
        """Only traffic is written to session logs."""
        return self.kind in _ARROWS

    def to_log_entry(self) -> str:
        """
        Render as a log entry: "HH:MM:SS → text" for tx, "HH:MM:SS ← text" for rx.
        Raises:
            ValueError: For non-traffic lines
        """
        if not self.loggable:
            raise ValueError(f"{self.kind.value} lines are not logged")
        return f"{self.timestamp:%H:%M:%S} {_ARROWS[self.kind]} {self.text}"


class Sink:
    """Consumer of terminal lines, called once per line in emission order."""

    def emit(self, line: TerminalLine) -> None:
        raise NotImplementedError


@dataclass
class TerminalOptions:
    format: DisplayFormat = DisplayFormat.ASCII
    append_crlf: bool = False
    local_echo: bool = False


class OpenError(Exception):
    """The transport refused to open the port. The message is the transport's own."""


class SendError(Exception):
    pass


class NotConnectedError(SendError):
    def __init__(self) -> None:
        super().__init__("Not connected")


class InvalidInputError(SendError):
    def __init__(self, cause: FormatError) -> None:
        super().__init__(str(cause))
        self.cause = cause


class TransportWriteError(SendError):
    pass


class SerialSession:
    """
    One serial connection and its terminal presentation.
    All mutation of connection state, the receive buffer and the counters happens
    under a single lock, so transport notifications and user calls never interleave.
    Args:
        transport (SerialTransport): Capability used to enumerate and open ports
        sink (Sink): Receives formatted terminal lines
        options (TerminalOptions): Display format, CR LF and local echo settings
        clock (Callable[[], datetime]): Time source for line stamps and uptime
    """

    def __init__(
        self,
        transport: SerialTransport,
        sink: Sink,
        options: Optional[TerminalOptions] = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._transport = transport
        self._sink = sink
        self._clock = clock
        self.options = options or TerminalOptions()
        self._framer = ByteFramer(self.options.format)
        self._state = SessionState()
        self._handle: Optional[TransportHandle] = None
        self._config: Optional[PortConfig] = None
        self._lock = threading.RLock()
        # serializes open/close sequences; never held by transport callbacks
        self._open_lock = threading.Lock()

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state.state

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    @property
    def stats(self) -> SessionStats:
        return self._state.stats

    @property
    def config(self) -> Optional[PortConfig]:
        """Settings of the current or most recent connection."""
        return self._config

    @property
    def pending(self) -> bytes:
        """Partial ASCII line waiting for its terminator."""
        with self._lock:
            return self._framer.pending

    def uptime(self) -> Optional[timedelta]:
        with self._lock:
            return self._state.stats.uptime(self._clock())

    # -- options ---------------------------------------------------------

    def set_format(self, fmt: DisplayFormat) -> None:
        """
        Change the display format. Already emitted lines are left as they are and a
        pending partial ASCII line is dropped.
        """
        fmt = DisplayFormat.parse(fmt)
        with self._lock:
            self.options.format = fmt
            self._framer.format = fmt

    # -- operations ------------------------------------------------------

    def _emit(self, kind: LineKind, text: str) -> None:
        self._sink.emit(TerminalLine(self._clock(), kind, text))

    def list_available_ports(self) -> List[PortInfo]:
        """
        Enumerate ports. Never raises: enumeration failures are logged and reported
        as an empty list.
        """
        try:
            ports = list(self._transport.list())
        except Exception as ex:
            _logger.warning("port enumeration failed: %s", ex)
            ports = []
        with self._lock:
            self._emit(LineKind.info, f"Found {len(ports)} port(s)")
        return ports

    def open(self, config: PortConfig) -> None:
        """
        Open a port, closing any port this session already holds first.
        Raises:
            OpenError: Transport refused; the session stays Disconnected
        """
        with self._open_lock:
            self._close_current()
            with self._lock:
                self._state.begin_connect()
            try:
                handle = self._transport.open(config)
            except Exception as ex:
                message = str(ex)
                with self._lock:
                    self._state.disconnected(self._clock())
                    self._emit(LineKind.error, f"Connection failed: {message}")
                _logger.info("open %s failed: %s", config.path, message)
                raise OpenError(message) from ex

            with self._lock:
                self._framer.reset()
                self._framer.format = self.options.format
                self._handle = handle
                self._config = config
                self._state.connected(self._clock())
                self._emit(LineKind.success, f"Connected to {config.path} at {config.baud_rate} baud")
                handle.subscribe(
                    partial(self._handle_data, handle),
                    partial(self._handle_error, handle),
                    partial(self._handle_closed, handle),
                )
            _logger.info("session connected to %s", config.path)

    def close(self) -> None:
        """Close the port. A no-op when nothing is open."""
        with self._open_lock:
            if self._close_current():
                with self._lock:
                    self._emit(LineKind.info, "Disconnected")

    def _close_current(self) -> bool:
        with self._lock:
            handle = self._detach()
        if handle is None:
            return False
        # outside the lock: closing joins the reader, which may be waiting on it
        handle.close()
        _logger.info("session closed")
        return True

    def _detach(self) -> Optional[TransportHandle]:
        """Drop the handle, clear the receive buffer and go Disconnected. Caller holds the lock."""
        handle, self._handle = self._handle, None
        self._framer.reset()
        if self._state.state is not ConnectionState.Disconnected:
            self._state.disconnected(self._clock())
        return handle

    def send(self, text: str, append_crlf: Optional[bool] = None) -> int:
        """
        Encode and write user input.
        Args:
            text (str): Input in the current display format
            append_crlf (bool, optional): Overrides options.append_crlf (ASCII only)
        Returns:
            int: Number of encoded bytes written
        Raises:
            NotConnectedError: No open port
            InvalidInputError: Input cannot be encoded; nothing is sent
            TransportWriteError: The write failed; the connection is left as is
        """
        if append_crlf is None:
            append_crlf = self.options.append_crlf
        with self._lock:
            if self._handle is None or not self._state.is_connected:
                self._emit(LineKind.error, "Not connected")
                raise NotConnectedError()
            if not text:
                return 0
            try:
                payload = encode_outbound(text, self.options.format, append_crlf)
            except FormatError as ex:
                if isinstance(ex, NonAsciiInputError):
                    self._emit(LineKind.error, f"Invalid input: {ex}")
                else:
                    self._emit(LineKind.error, str(ex))
                raise InvalidInputError(ex) from ex
            try:
                self._handle.write(payload)
            except TransportError as ex:
                self._emit(LineKind.error, f"Send failed: {ex}")
                raise TransportWriteError(str(ex)) from ex
            self._state.stats.add_tx(len(payload))
            _logger.debug("tx %d bytes", len(payload))
            if self.options.local_echo:
                self._emit(LineKind.tx, text)
            return len(payload)

    # -- transport notifications -----------------------------------------

    def on_inbound_data(self, data: bytes) -> None:
        self._handle_data(self._handle, data)

    def on_transport_error(self, message: str) -> None:
        self._handle_error(self._handle, message)

    def on_transport_closed(self) -> None:
        self._handle_closed(self._handle)

    def _owns(self, handle: Optional[TransportHandle]) -> bool:
        return handle is not None and handle is self._handle and self._state.is_connected

    def _handle_data(self, handle: Optional[TransportHandle], data: bytes) -> None:
        with self._lock:
            if not self._owns(handle):
                return
            self._state.stats.add_rx(len(data))
            self._framer.format = self.options.format
            fmt = self._framer.format
            for unit in self._framer.feed(data):
                self._emit(LineKind.rx, decode_inbound(unit, fmt))

    def _handle_error(self, handle: Optional[TransportHandle], message: str) -> None:
        self._drop(handle, LineKind.error, f"Error: {message}")

    def _handle_closed(self, handle: Optional[TransportHandle]) -> None:
        self._drop(handle, LineKind.warning, "Port closed unexpectedly")

    def _drop(self, handle: Optional[TransportHandle], kind: LineKind, text: str) -> None:
        detached = False
        try:
            with self._lock:
                if not self._owns(handle):
                    return
                self._detach()
                detached = True
                _logger.warning("connection lost: %s", text)
                self._emit(kind, text)
        finally:
            # release the device even if the sink failed; safe from the reader thread
            if detached:
                handle.close()

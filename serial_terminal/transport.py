from __future__ import annotations

import errno
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Final, List, Optional, Union

import serial  # type: ignore
from serial.tools import list_ports  # type: ignore

_logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT: Final[float] = 0.1
DEFAULT_WRITE_TIMEOUT: Final[float] = 1.0

DataCallback = Callable[[bytes], None]
ErrorCallback = Callable[[str], None]
ClosedCallback = Callable[[], None]


class Parity(str, Enum):
    NONE = "none"
    ODD = "odd"
    EVEN = "even"
    MARK = "mark"
    SPACE = "space"


_PARITY = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
    Parity.MARK: serial.PARITY_MARK,
    Parity.SPACE: serial.PARITY_SPACE,
}
_BYTESIZE = {5: serial.FIVEBITS, 6: serial.SIXBITS, 7: serial.SEVENBITS, 8: serial.EIGHTBITS}
_STOPBITS = {1: serial.STOPBITS_ONE, 1.5: serial.STOPBITS_ONE_POINT_FIVE, 2: serial.STOPBITS_TWO}


@dataclass(frozen=True)
class PortConfig:
    """
    Settings used to open a port. Immutable; reopen to apply a change.
    Fields:
        path: Device path or pyserial URL (e.g. /dev/ttyUSB0, COM3, loop://)
        baud_rate: Positive baud rate
        data_bits: 5, 6, 7 or 8
        stop_bits: 1, 1.5 or 2
        parity: none, odd, even, mark or space
    """
    path: str
    baud_rate: int = 115200
    data_bits: int = 8
    stop_bits: float = 1
    parity: Union[Parity, str] = Parity.NONE

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("port path is required")
        if isinstance(self.baud_rate, bool) or not isinstance(self.baud_rate, int) or self.baud_rate <= 0:
            raise ValueError(f"baud rate must be a positive integer, got {self.baud_rate!r}")
        if self.data_bits not in _BYTESIZE:
            raise ValueError(f"data bits must be one of 5, 6, 7, 8, got {self.data_bits!r}")
        if self.stop_bits not in _STOPBITS:
            raise ValueError(f"stop bits must be one of 1, 1.5, 2, got {self.stop_bits!r}")
        try:
            parity = Parity(str(getattr(self.parity, "value", self.parity)).lower())
        except ValueError:
            raise ValueError(f"unknown parity: {self.parity!r}") from None
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, "parity", parity)


@dataclass(frozen=True)
class PortInfo:
    path: str
    manufacturer: Optional[str] = None
    serial_number: Optional[str] = None
    pnp_id: Optional[str] = None
    vendor_id: Optional[str] = None
    product_id: Optional[str] = None


class TransportError(Exception):
    """A device-level failure (open refused, write failed, read failed)."""


class TransportHandle:
    """An open connection. Owned by exactly one session."""

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    def subscribe(self, on_data: DataCallback, on_error: ErrorCallback, on_closed: ClosedCallback) -> None:
        """Start delivering notifications. Called once, after the owner has registered the handle."""
        raise NotImplementedError

    def write(self, data: bytes) -> int:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class SerialTransport:
    """Capability that enumerates and opens serial ports."""

    def list(self) -> List[PortInfo]:
        raise NotImplementedError

    def open(self, config: PortConfig) -> TransportHandle:
        raise NotImplementedError


def _hex_id(value: Optional[int]) -> Optional[str]:
    return None if value is None else f"{value:04x}"


# posix read() wording when a USB adapter is unplugged
_DISCONNECT_MARKERS: Final = ("returned no data", "device disconnected")
_DISCONNECT_ERRNOS: Final = frozenset({errno.ENXIO, errno.ENODEV, errno.EIO})


def _is_disconnect(ex: BaseException) -> bool:
    """True if a read failure means the device itself is gone."""
    if isinstance(ex, OSError) and ex.errno in _DISCONNECT_ERRNOS:
        return True
    if isinstance(ex, serial.SerialException):
        text = str(ex).lower()
        if any(marker in text for marker in _DISCONNECT_MARKERS):
            return True
        # pyserial re-raises "read failed: [Errno 5] ..." without the errno
        inner = ex.__cause__ or ex.__context__
        return inner is not None and inner is not ex and _is_disconnect(inner)
    return False


class PySerialHandle(TransportHandle):
    """
    pyserial-backed handle. A daemon thread reads the port once subscribed.
    Args:
        ser (serial.Serial): An already open port
    """

    _serial: serial.Serial
    _thread: Optional[threading.Thread]

    def __init__(self, ser: serial.Serial) -> None:
        self._serial = ser
        self._stop = threading.Event()
        self._thread = None

    @property
    def is_open(self) -> bool:
        return bool(self._serial.is_open) and not self._stop.is_set()

    def subscribe(self, on_data: DataCallback, on_error: ErrorCallback, on_closed: ClosedCallback) -> None:
        if self._thread is not None:
            raise RuntimeError("handle already subscribed")
        self._thread = threading.Thread(
            target=self._reader,
            args=(on_data, on_error, on_closed),
            name=f"serial-reader:{self._serial.port}",
            daemon=True,
        )
        self._thread.start()

    def _reader(self, on_data: DataCallback, on_error: ErrorCallback, on_closed: ClosedCallback) -> None:
        while not self._stop.is_set():
            try:
                chunk = self._serial.read(self._serial.in_waiting or 1)
            except (serial.SerialException, OSError, TypeError, AttributeError) as ex:
                # pyserial may raise TypeError/AttributeError when the fd is torn down mid-read
                if self._stop.is_set():
                    return
                if not self._serial.is_open or _is_disconnect(ex):
                    _logger.warning("port %s went away: %s", self._serial.port, ex)
                    on_closed()
                else:
                    _logger.warning("read failed on %s: %s", self._serial.port, ex)
                    on_error(str(ex))
                return
            if chunk and not self._stop.is_set():
                _logger.debug("rx %d bytes", len(chunk))
                try:
                    on_data(bytes(chunk))
                except Exception as ex:
                    _logger.exception("rx handler failed on %s", self._serial.port)
                    on_error(f"receive handler failed: {ex}")
                    return

    def write(self, data: bytes) -> int:
        """
        Write bytes to the port.
        Returns:
            int: Number of bytes written
        Raises:
            TransportError: On write failure or write timeout
        """
        try:
            written = self._serial.write(data)
        except (serial.SerialException, OSError) as ex:
            raise TransportError(str(ex)) from ex
        return len(data) if written is None else int(written)

    def close(self) -> None:
        """
        Stop the reader and close the port. Safe to call repeatedly and from the reader thread.
        """
        self._stop.set()
        try:
            self._serial.close()
        except Exception as ex:
            _logger.debug("ignoring close failure: %s", ex)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)


class PySerialTransport(SerialTransport):
    """
    Opens ports through pyserial. Device paths and pyserial URLs are both accepted.
    Args:
        timeout (float): Read timeout in seconds, bounds how long close() waits on the reader
        write_timeout (float): Write timeout in seconds
    """

    def __init__(self, timeout: float = DEFAULT_READ_TIMEOUT, write_timeout: float = DEFAULT_WRITE_TIMEOUT) -> None:
        self.timeout = timeout
        self.write_timeout = write_timeout

    def list(self) -> List[PortInfo]:
        ports = []
        for port_info in list_ports.comports():
            ports.append(PortInfo(
                path=port_info.device,
                manufacturer=port_info.manufacturer,
                serial_number=port_info.serial_number,
                pnp_id=port_info.hwid,
                vendor_id=_hex_id(port_info.vid),
                product_id=_hex_id(port_info.pid),
            ))
        return sorted(ports, key=lambda p: p.path)

    def open(self, config: PortConfig) -> PySerialHandle:
        """
        Open a port.
        Raises:
            TransportError: If the device refuses or does not exist
        """
        try:
            ser = serial.serial_for_url(
                config.path,
                baudrate=config.baud_rate,
                bytesize=_BYTESIZE[config.data_bits],
                parity=_PARITY[Parity(config.parity)],
                stopbits=_STOPBITS[config.stop_bits],
                timeout=self.timeout,
                write_timeout=self.write_timeout,
            )
        except (serial.SerialException, OSError, ValueError) as ex:
            raise TransportError(str(ex)) from ex
        _logger.info("opened %s at %d baud", config.path, config.baud_rate)
        return PySerialHandle(ser)

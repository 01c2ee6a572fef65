"""Serial terminal package.

Session engine and CLI for talking to serial devices using pyserial, with
ASCII line framing or hex dump display.
"""

__all__ = [
    "ByteFramer",
    "ConnectionState",
    "DisplayFormat",
    "FormatError",
    "LineKind",
    "OpenError",
    "PortConfig",
    "PortInfo",
    "PySerialTransport",
    "SendError",
    "SerialSession",
    "SessionStats",
    "TerminalLine",
    "TerminalOptions",
    "decode_inbound",
    "encode_outbound",
]

from .codec import DisplayFormat, FormatError, decode_inbound, encode_outbound
from .framer import ByteFramer
from .session import LineKind, OpenError, SendError, SerialSession, TerminalLine, TerminalOptions
from .state import ConnectionState, SessionStats
from .transport import PortConfig, PortInfo, PySerialTransport

__version__ = "0.1.0"

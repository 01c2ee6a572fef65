from __future__ import annotations

import re
from enum import Enum
from typing import Final

_NON_HEX: Final = re.compile(r"[^0-9a-fA-F]")
CRLF: Final[bytes] = b"\r\n"


class DisplayFormat(str, Enum):
    """
    How bytes are shown on screen and how free-text input is encoded.
    ASCII: one character per byte, inbound data split into lines
    Hex: two uppercase hex digits per byte, inbound data shown per chunk
    """
    ASCII = "ascii"
    Hex = "hex"

    @classmethod
    def parse(cls, value: "str | DisplayFormat") -> "DisplayFormat":
        """
        Resolve a format name (case-insensitive) or pass a DisplayFormat through.
        Raises:
            ValueError: If the name is not a known format
        """
        if isinstance(value, DisplayFormat):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown display format: {value!r}") from None


class FormatError(ValueError):
    """Raised when user input cannot be turned into wire bytes."""


class NonAsciiInputError(FormatError):
    def __init__(self, char: str, index: int) -> None:
        super().__init__(f"non-ASCII character {char!r} at position {index}")
        self.char = char
        self.index = index


class OddHexLengthError(FormatError):
    def __init__(self, digits: int) -> None:
        super().__init__("Invalid hex string (must be even length)")
        self.digits = digits


class NoHexDigitsError(FormatError):
    def __init__(self, text: str) -> None:
        super().__init__("Invalid hex string (no hex digits)")
        self.text = text


def _encode_ascii(text: str) -> bytes:
    try:
        return text.encode("ascii")
    except UnicodeEncodeError as e:
        raise NonAsciiInputError(text[e.start], e.start) from None


def _encode_hex(text: str) -> bytes:
    digits = _NON_HEX.sub("", text)
    if text and not digits:
        raise NoHexDigitsError(text)
    if len(digits) % 2:
        raise OddHexLengthError(len(digits))
    return bytes.fromhex(digits)


def encode_outbound(text: str, fmt: DisplayFormat, append_crlf: bool = False) -> bytes:
    """
    Convert user input into the byte sequence written to the port.
    Args:
        text (str): Input as typed by the user
        fmt (DisplayFormat): ASCII sends characters, Hex parses digit pairs
        append_crlf (bool): Append CR LF (ASCII only)
    Returns:
        bytes: Encoded payload
    Raises:
        NonAsciiInputError: ASCII input holds a character above 0x7F
        OddHexLengthError: Hex input has an odd number of hex digits
        NoHexDigitsError: Hex input is not empty but holds no hex digits
    """
    if fmt is DisplayFormat.Hex:
        # every character outside [0-9a-fA-F] is a separator
        return _encode_hex(text)
    raw = _encode_ascii(text)
    if append_crlf:
        raw += CRLF
    return raw


def decode_inbound(data: bytes, fmt: DisplayFormat) -> str:
    """
    Render received bytes for display.
    Args:
        data (bytes): Raw bytes
        fmt (DisplayFormat): Display mode
    Returns:
        str: One character per byte (ASCII) or space-separated uppercase hex pairs (Hex)
    """
    if fmt is DisplayFormat.Hex:
        return bytes(data).hex(" ").upper()
    return bytes(data).decode("latin-1")

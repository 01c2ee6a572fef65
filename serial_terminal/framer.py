from __future__ import annotations

import re
from typing import Final, List

from .codec import DisplayFormat


class ByteFramer:
    """
    Turns an inbound byte stream into display units.
    Features:
        - ASCII: buffers partial lines across chunks, splits on CR LF, LF or a lone CR
        - Hex: no buffering, every chunk is one unit
        - Zero-length lines are dropped
    Args:
        fmt (DisplayFormat): Initial display format
    """
    LINE_BREAK: Final = re.compile(rb"\r\n|\n|\r")

    def __init__(self, fmt: DisplayFormat = DisplayFormat.ASCII) -> None:
        self._format = fmt
        self._buf = bytearray()

    @property
    def format(self) -> DisplayFormat:
        return self._format

    @format.setter
    def format(self, fmt: DisplayFormat) -> None:
        """
        Switch the framing mode. A pending partial ASCII line is discarded, never emitted.
        """
        if fmt is not self._format:
            self._buf.clear()
        self._format = fmt

    @property
    def pending(self) -> bytes:
        """Bytes received after the last line break (ASCII only)."""
        return bytes(self._buf)

    def reset(self) -> None:
        self._buf.clear()

    def feed(self, chunk: bytes) -> List[bytes]:
        """
        Consume one inbound chunk.
        Args:
            chunk (bytes): Bytes as delivered by the transport, any length
        Returns:
            List[bytes]: Complete units in arrival order, without line terminators
        """
        if not chunk:
            return []
        if self._format is DisplayFormat.Hex:
            return [bytes(chunk)]

        if not self.LINE_BREAK.search(chunk):
            # the remainder never holds a break, so only new bytes can complete a line
            self._buf += chunk
            return []
        self._buf += chunk
        segments = self.LINE_BREAK.split(bytes(self._buf))
        # last segment is the unterminated remainder, possibly empty
        self._buf[:] = segments.pop()
        return [s for s in segments if s]

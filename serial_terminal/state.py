"""Connection state machine and traffic counters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, Optional


class ConnectionState(str, Enum):
    Disconnected = "Disconnected"
    Connecting = "Connecting"
    Connected = "Connected"


class InvalidTransition(RuntimeError):
    def __init__(self, current: ConnectionState, target: ConnectionState) -> None:
        super().__init__(f"cannot go from {current.value} to {target.value}")
        self.current = current
        self.target = target


_ALLOWED: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    ConnectionState.Disconnected: frozenset({ConnectionState.Connecting, ConnectionState.Disconnected}),
    ConnectionState.Connecting: frozenset({ConnectionState.Connected, ConnectionState.Disconnected}),
    ConnectionState.Connected: frozenset({ConnectionState.Disconnected}),
}


@dataclass
class SessionStats:
    """
    Traffic counters for the current (or most recent) connection.
    Counters only grow while connected and are left untouched on disconnect.
    """
    rx_bytes: int = 0
    tx_bytes: int = 0
    connected_since: Optional[datetime] = None
    disconnected_at: Optional[datetime] = None

    def add_rx(self, count: int) -> None:
        if count < 0:
            raise ValueError("byte count must be non-negative")
        self.rx_bytes += count

    def add_tx(self, count: int) -> None:
        if count < 0:
            raise ValueError("byte count must be non-negative")
        self.tx_bytes += count

    def uptime(self, now: datetime) -> Optional[timedelta]:
        """
        Time spent connected. Frozen at the disconnect instant once the connection ends.
        Returns:
            timedelta or None: None if no connection has been made yet
        """
        if self.connected_since is None:
            return None
        end = self.disconnected_at or now
        return max(end - self.connected_since, timedelta(0))


class SessionState:
    """
    Disconnected -> Connecting -> Connected -> Disconnected.
    Entering Connected resets the counters and stamps connected_since.
    Not thread-safe on its own; the owning session serializes access.
    """

    def __init__(self) -> None:
        self._state = ConnectionState.Disconnected
        self.stats = SessionStats()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.Connected

    def _move(self, target: ConnectionState) -> ConnectionState:
        if target not in _ALLOWED[self._state]:
            raise InvalidTransition(self._state, target)
        previous, self._state = self._state, target
        return previous

    def begin_connect(self) -> None:
        self._move(ConnectionState.Connecting)

    def connected(self, now: datetime) -> None:
        self._move(ConnectionState.Connected)
        self.stats = SessionStats(connected_since=now)

    def disconnected(self, now: datetime) -> bool:
        """
        Go to Disconnected from any state.
        Returns:
            bool: True if a live connection was ended
        """
        previous = self._move(ConnectionState.Disconnected)
        if previous is ConnectionState.Connected:
            self.stats.disconnected_at = now
            return True
        return False


def format_uptime(elapsed: Optional[timedelta]) -> str:
    """Render elapsed time as HH:MM:SS."""
    total = int(elapsed.total_seconds()) if elapsed else 0
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_bytes(count: int) -> str:
    if count == 0:
        return "0 bytes"
    if count < 1024:
        return f"{count} bytes"
    if count < 1024 * 1024:
        return f"{count / 1024:.2f} KB"
    return f"{count / (1024 * 1024):.2f} MB"

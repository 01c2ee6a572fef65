from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from .session import Sink, TerminalLine


class LogBuffer(Sink):
    """
    Keeps the traffic (tx/rx) lines of a session while enabled.
    Status and error lines are never logged.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: List[str] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def emit(self, line: TerminalLine) -> None:
        if self.enabled and line.loggable:
            self._entries.append(line.to_log_entry())

    def render(self) -> str:
        return "\n".join(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    @staticmethod
    def default_filename(today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"serial-log-{today.isoformat()}.txt"

    def save(self, directory: Union[str, Path], today: Optional[date] = None) -> Optional[Path]:
        """
        Write the buffered entries to serial-log-YYYY-MM-DD.txt and empty the buffer.
        Args:
            directory (str | Path): Target directory, created if missing
            today (date, optional): Date used in the file name
        Returns:
            Path or None: The written file, None if there was nothing to save
        """
        if not self._entries:
            return None
        folder = Path(directory)
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / self.default_filename(today)
        path.write_text(self.render(), encoding="utf-8")
        self._entries.clear()
        return path


class TeeSink(Sink):
    """Forwards every line to each wrapped sink, in order."""

    def __init__(self, *sinks: Sink) -> None:
        self.sinks = list(sinks)

    def emit(self, line: TerminalLine) -> None:
        for sink in self.sinks:
            sink.emit(line)

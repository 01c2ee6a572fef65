"""Load terminal settings from config.toml."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:  # Python 3.11+
    import tomllib as _toml
except ImportError:  # pragma: no cover
    import tomli as _toml  # type: ignore

from .codec import DisplayFormat
from .session import TerminalOptions
from .transport import DEFAULT_READ_TIMEOUT, DEFAULT_WRITE_TIMEOUT, PortConfig

_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"


@dataclass
class SerialSettings:
    baudrate: int = 115200
    data_bits: int = 8
    stop_bits: float = 1
    parity: str = "none"
    timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT

    def port_config(self, path: str) -> PortConfig:
        return PortConfig(
            path=path,
            baud_rate=self.baudrate,
            data_bits=self.data_bits,
            stop_bits=self.stop_bits,
            parity=self.parity,
        )


@dataclass
class TerminalSettings:
    format: DisplayFormat = DisplayFormat.ASCII
    append_crlf: bool = False
    local_echo: bool = False
    timestamps: bool = False

    def options(self) -> TerminalOptions:
        return TerminalOptions(format=self.format, append_crlf=self.append_crlf, local_echo=self.local_echo)


@dataclass
class Config:
    serial: SerialSettings = field(default_factory=SerialSettings)
    terminal: TerminalSettings = field(default_factory=TerminalSettings)


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            return _toml.load(f)
    except FileNotFoundError:
        _logger.debug("config file %s not found, using defaults", path)
        return {}
    except (OSError, _toml.TOMLDecodeError) as e:
        _logger.warning("failed to parse config %s: %s; using defaults", path, e)
        return {}


def _take(section: Dict[str, Any], key: str, default: Any, convert) -> Any:
    if key not in section:
        return default
    try:
        return convert(section[key])
    except (TypeError, ValueError):
        _logger.warning("invalid value for %s: %r; using %r", key, section[key], default)
        return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError("expected true or false")


def _one_of(*allowed):
    def convert(value: Any) -> Any:
        if value not in allowed:
            raise ValueError(f"expected one of {allowed}")
        return value
    return convert


def _positive_int(value: Any) -> int:
    if isinstance(value, bool) or int(value) != value or value <= 0:
        raise ValueError("expected a positive integer")
    return int(value)


def _parity(value: Any) -> str:
    name = str(value).lower()
    if name not in ("none", "odd", "even", "mark", "space"):
        raise ValueError("unknown parity")
    return name


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """
    Load settings from a TOML file. A missing or unreadable file, and any invalid
    value, falls back to the defaults.
    """
    raw = _read_toml(Path(path or DEFAULT_CONFIG_PATH))
    serial_cfg = raw.get("serial", {}) or {}
    term_cfg = raw.get("terminal", {}) or {}
    s = SerialSettings()
    t = TerminalSettings()
    return Config(
        serial=SerialSettings(
            baudrate=_take(serial_cfg, "baudrate", s.baudrate, _positive_int),
            data_bits=_take(serial_cfg, "data_bits", s.data_bits, _one_of(5, 6, 7, 8)),
            stop_bits=_take(serial_cfg, "stop_bits", s.stop_bits, _one_of(1, 1.5, 2)),
            parity=_take(serial_cfg, "parity", s.parity, _parity),
            timeout=_take(serial_cfg, "timeout", s.timeout, float),
            write_timeout=_take(serial_cfg, "write_timeout", s.write_timeout, float),
        ),
        terminal=TerminalSettings(
            format=_take(term_cfg, "format", t.format, DisplayFormat.parse),
            append_crlf=_take(term_cfg, "append_crlf", t.append_crlf, _as_bool),
            local_echo=_take(term_cfg, "local_echo", t.local_echo, _as_bool),
            timestamps=_take(term_cfg, "timestamps", t.timestamps, _as_bool),
        ),
    )

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import click

from .codec import DisplayFormat
from .config import Config, load_config
from .session import LineKind, OpenError, SendError, SerialSession, Sink, TerminalLine
from .sinks import LogBuffer, TeeSink
from .state import format_bytes, format_uptime
from .transport import PySerialTransport

_STYLES = {
    LineKind.info: {"dim": True},
    LineKind.error: {"fg": "red"},
    LineKind.success: {"fg": "green"},
    LineKind.warning: {"fg": "yellow"},
    LineKind.tx: {"fg": "cyan"},
    LineKind.rx: {},
}
_ARROWS = {LineKind.tx: "→ ", LineKind.rx: "← "}


class ConsoleSink(Sink):
    """Prints terminal lines with click, colored by kind."""

    def __init__(self, timestamps: bool = False) -> None:
        self.timestamps = timestamps

    def emit(self, line: TerminalLine) -> None:
        text = _ARROWS.get(line.kind, "") + line.text
        if self.timestamps:
            text = f"{line.timestamp:%H:%M:%S} {text}"
        click.echo(click.style(text, **_STYLES[line.kind]), err=line.kind is LineKind.error)


def _serial_options(f: Callable) -> Callable:
    # None means "use config.toml / built-in default"
    f = click.option("-b", "--baudrate", type=int, default=None, help="Baud rate")(f)
    f = click.option("--data-bits", type=click.Choice(["5", "6", "7", "8"]), default=None, help="Data bits")(f)
    f = click.option("--stop-bits", type=click.Choice(["1", "1.5", "2"]), default=None, help="Stop bits")(f)
    f = click.option("--parity", type=click.Choice(["none", "odd", "even", "mark", "space"]), default=None,
                     help="Parity")(f)
    return f


def _port_config(cfg: Config, port: str, baudrate: Optional[int], data_bits: Optional[str],
                 stop_bits: Optional[str], parity: Optional[str]):
    s = cfg.serial
    if baudrate is not None:
        s.baudrate = baudrate
    if data_bits is not None:
        s.data_bits = int(data_bits)
    if stop_bits is not None:
        s.stop_bits = float(stop_bits) if stop_bits == "1.5" else int(stop_bits)
    if parity is not None:
        s.parity = parity
    try:
        return s.port_config(port)
    except ValueError as e:
        raise click.ClickException(str(e))


def _make_session(cfg: Config, sink: Sink) -> SerialSession:
    transport = PySerialTransport(timeout=cfg.serial.timeout, write_timeout=cfg.serial.write_timeout)
    return SerialSession(transport, sink, cfg.terminal.options())


def _fail() -> None:
    # the session already printed the reason
    click.get_current_context().exit(1)


@click.group()
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to config.toml (default: ./config.toml)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """Serial port terminal.

    Examples:

      # List serial ports
      serial-terminal ports

      # Send a line and show what comes back
      serial-terminal send /dev/ttyUSB0 "hello" --crlf

      # Send raw bytes
      serial-terminal send COM3 "48 65 6C 6C 6F" --hex

      # Interactive session at 9600 baud with local echo
      serial-terminal monitor /dev/ttyUSB0 -b 9600 --echo
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_config(config_path)


@main.command()
@click.pass_obj
def ports(cfg: Config) -> None:
    """List available serial ports."""
    session = _make_session(cfg, ConsoleSink())
    for port in session.list_available_ports():
        click.echo(f"{port.path} - {port.manufacturer or 'Unknown'}")


@main.command()
@click.argument("port")
@click.argument("data")
@_serial_options
@click.option("--hex/--ascii", "hex_mode", default=None, help="Interpret DATA as hex digits")
@click.option("--crlf/--no-crlf", default=None, help="Append CR LF (ascii only)")
@click.option("-w", "--wait", type=float, default=1.0, show_default=True,
              help="Seconds to show received data before closing")
@click.pass_obj
def send(cfg: Config, port: str, data: str, baudrate: Optional[int], data_bits: Optional[str],
         stop_bits: Optional[str], parity: Optional[str], hex_mode: Optional[bool],
         crlf: Optional[bool], wait: float) -> None:
    """Open PORT, send DATA once, show replies for a while, close."""
    config = _port_config(cfg, port, baudrate, data_bits, stop_bits, parity)
    if hex_mode is not None:
        cfg.terminal.format = DisplayFormat.Hex if hex_mode else DisplayFormat.ASCII
    if crlf is not None:
        cfg.terminal.append_crlf = crlf

    session = _make_session(cfg, ConsoleSink(cfg.terminal.timestamps))
    try:
        session.open(config)
    except OpenError:
        _fail()
    try:
        written = session.send(data)
        click.echo(f"Sent {written} bytes to {port}")
        time.sleep(max(wait, 0.0))
    except SendError:
        _fail()
    finally:
        session.close()


def _print_stats(session: SerialSession) -> None:
    stats = session.stats
    click.echo(
        f"RX: {format_bytes(stats.rx_bytes)}  TX: {format_bytes(stats.tx_bytes)}  "
        f"Uptime: {format_uptime(session.uptime())}"
    )


@main.command()
@click.argument("port")
@_serial_options
@click.option("--hex/--ascii", "hex_mode", default=None, help="Display format")
@click.option("--crlf/--no-crlf", default=None, help="Append CR LF to each line sent (ascii only)")
@click.option("--echo/--no-echo", default=None, help="Show sent lines locally")
@click.option("--timestamps/--no-timestamps", default=None, help="Prefix lines with the time")
@click.option("--log", "log_dir", type=click.Path(file_okay=False), default=None,
              help="Save sent/received lines to DIR/serial-log-YYYY-MM-DD.txt on exit")
@click.pass_obj
def monitor(cfg: Config, port: str, baudrate: Optional[int], data_bits: Optional[str],
            stop_bits: Optional[str], parity: Optional[str], hex_mode: Optional[bool],
            crlf: Optional[bool], echo: Optional[bool], timestamps: Optional[bool],
            log_dir: Optional[str]) -> None:
    """Interactive session on PORT.

    Each input line is sent. Local commands: /hex, /ascii, /stats, /quit.
    """
    config = _port_config(cfg, port, baudrate, data_bits, stop_bits, parity)
    t = cfg.terminal
    if hex_mode is not None:
        t.format = DisplayFormat.Hex if hex_mode else DisplayFormat.ASCII
    if crlf is not None:
        t.append_crlf = crlf
    if echo is not None:
        t.local_echo = echo
    if timestamps is not None:
        t.timestamps = timestamps

    log = LogBuffer(enabled=log_dir is not None)
    session = _make_session(cfg, TeeSink(ConsoleSink(t.timestamps), log))
    try:
        session.open(config)
    except OpenError:
        _fail()

    stdin = click.get_text_stream("stdin")
    try:
        for raw in stdin:
            line = raw.rstrip("\r\n")
            if line == "/quit":
                break
            if line == "/stats":
                _print_stats(session)
                continue
            if line in ("/hex", "/ascii"):
                session.set_format(line[1:])
                click.echo(f"Format: {line[1:]}")
                continue
            if not session.is_connected:
                break
            try:
                session.send(line)
            except SendError:
                # already reported on the terminal
                continue
    finally:
        session.close()
        _print_stats(session)
        if log_dir is not None:
            saved = log.save(Path(log_dir))
            if saved:
                click.echo(f"Log saved to {saved}")


if __name__ == "__main__":
    main()

from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from serial_terminal.state import (
    ConnectionState,
    InvalidTransition,
    SessionState,
    format_bytes,
    format_uptime,
)

T0 = datetime(2024, 1, 1, 12, 0, 0)


class TestSessionState(unittest.TestCase):
    def test_initially_disconnected(self):
        s = SessionState()
        self.assertIs(s.state, ConnectionState.Disconnected)
        self.assertIsNone(s.stats.uptime(T0))

    def test_connect_cycle(self):
        s = SessionState()
        s.begin_connect()
        self.assertIs(s.state, ConnectionState.Connecting)
        s.connected(T0)
        self.assertTrue(s.is_connected)
        self.assertEqual(s.stats.connected_since, T0)
        self.assertTrue(s.disconnected(T0 + timedelta(seconds=5)))
        self.assertIs(s.state, ConnectionState.Disconnected)

    def test_failed_connect_returns_to_disconnected(self):
        s = SessionState()
        s.begin_connect()
        self.assertFalse(s.disconnected(T0))
        self.assertIs(s.state, ConnectionState.Disconnected)

    def test_invalid_transitions(self):
        s = SessionState()
        with self.assertRaises(InvalidTransition):
            s.connected(T0)
        s.begin_connect()
        with self.assertRaises(InvalidTransition):
            s.begin_connect()
        s.connected(T0)
        with self.assertRaises(InvalidTransition):
            s.begin_connect()

    def test_counters_reset_on_connect_and_frozen_on_disconnect(self):
        s = SessionState()
        s.begin_connect()
        s.connected(T0)
        s.stats.add_rx(10)
        s.stats.add_tx(3)
        s.disconnected(T0 + timedelta(seconds=90))
        self.assertEqual((s.stats.rx_bytes, s.stats.tx_bytes), (10, 3))
        # uptime stops at the disconnect instant
        self.assertEqual(s.stats.uptime(T0 + timedelta(hours=1)), timedelta(seconds=90))

        s.begin_connect()
        s.connected(T0 + timedelta(hours=2))
        self.assertEqual((s.stats.rx_bytes, s.stats.tx_bytes), (0, 0))
        self.assertEqual(s.stats.uptime(T0 + timedelta(hours=2, seconds=1)), timedelta(seconds=1))

    def test_counters_never_decrease(self):
        s = SessionState()
        with self.assertRaises(ValueError):
            s.stats.add_rx(-1)
        with self.assertRaises(ValueError):
            s.stats.add_tx(-1)


class TestFormatting(unittest.TestCase):
    def test_format_uptime(self):
        self.assertEqual(format_uptime(None), "00:00:00")
        self.assertEqual(format_uptime(timedelta(seconds=3725)), "01:02:05")
        self.assertEqual(format_uptime(timedelta(hours=100)), "100:00:00")

    def test_format_bytes(self):
        self.assertEqual(format_bytes(0), "0 bytes")
        self.assertEqual(format_bytes(1023), "1023 bytes")
        self.assertEqual(format_bytes(1536), "1.50 KB")
        self.assertEqual(format_bytes(3 * 1024 * 1024), "3.00 MB")


if __name__ == "__main__":
    unittest.main()

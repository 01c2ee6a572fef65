from __future__ import annotations

import unittest

from serial_terminal.codec import DisplayFormat
from serial_terminal.framer import ByteFramer


class TestAsciiFraming(unittest.TestCase):
    def test_partial_line_across_chunks(self):
        f = ByteFramer()
        self.assertEqual(f.feed(b"AB\r\nC"), [b"AB"])
        self.assertEqual(f.pending, b"C")
        self.assertEqual(f.feed(b"D\n"), [b"CD"])
        self.assertEqual(f.pending, b"")

    def test_all_line_endings(self):
        f = ByteFramer()
        self.assertEqual(f.feed(b"one\r\ntwo\nthree\rfour"), [b"one", b"two", b"three"])
        self.assertEqual(f.pending, b"four")

    def test_crlf_split_between_chunks(self):
        f = ByteFramer()
        self.assertEqual(f.feed(b"AB\r"), [b"AB"])
        self.assertEqual(f.feed(b"\nCD\r\n"), [b"CD"])

    def test_zero_length_lines_dropped(self):
        f = ByteFramer()
        self.assertEqual(f.feed(b"\r\n\r\n\n\r"), [])
        self.assertEqual(f.feed(b"x\n\n y \n"), [b"x", b" y "])

    def test_chunk_boundaries_do_not_matter(self):
        data = b"AT\r\nOK\r\n\r\n+CSQ: 20,0\rready\nERR\r\npartial"
        whole = ByteFramer()
        expected = whole.feed(data)
        self.assertEqual(expected, [b"AT", b"OK", b"+CSQ: 20,0", b"ready", b"ERR"])
        for split in range(len(data) + 1):
            with self.subTest(split=split):
                f = ByteFramer()
                out = f.feed(data[:split]) + f.feed(data[split:])
                self.assertEqual(out, expected)
                self.assertEqual(f.pending, whole.pending)

    def test_byte_at_a_time(self):
        f = ByteFramer()
        out = []
        for b in b"hello\r\nworld\n":
            out += f.feed(bytes([b]))
        self.assertEqual(out, [b"hello", b"world"])

    def test_long_line_in_single_bytes(self):
        f = ByteFramer()
        for _ in range(50_000):
            self.assertEqual(f.feed(b"x"), [])
        self.assertEqual(len(f.pending), 50_000)
        self.assertEqual(f.feed(b"\r\n"), [b"x" * 50_000])
        self.assertEqual(f.pending, b"")

    def test_empty_chunk(self):
        f = ByteFramer()
        self.assertEqual(f.feed(b""), [])

    def test_reset_discards_partial_line(self):
        f = ByteFramer()
        f.feed(b"never finished")
        f.reset()
        self.assertEqual(f.pending, b"")
        self.assertEqual(f.feed(b"\n"), [])


class TestHexFraming(unittest.TestCase):
    def test_chunk_is_one_unit(self):
        f = ByteFramer(DisplayFormat.Hex)
        self.assertEqual(f.feed(b"\x48\x69"), [b"\x48\x69"])
        self.assertEqual(f.feed(b"a\r\nb"), [b"a\r\nb"])
        self.assertEqual(f.pending, b"")

    def test_switch_to_hex_drops_pending_line(self):
        f = ByteFramer()
        f.feed(b"half")
        f.format = DisplayFormat.Hex
        self.assertEqual(f.pending, b"")
        self.assertEqual(f.feed(b"\x01"), [b"\x01"])
        f.format = DisplayFormat.ASCII
        self.assertEqual(f.feed(b"\n"), [])

    def test_same_format_keeps_pending(self):
        f = ByteFramer()
        f.feed(b"half")
        f.format = DisplayFormat.ASCII
        self.assertEqual(f.pending, b"half")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest

from serial_terminal.codec import (
    DisplayFormat,
    FormatError,
    NoHexDigitsError,
    NonAsciiInputError,
    OddHexLengthError,
    decode_inbound,
    encode_outbound,
)


class TestEncodeOutbound(unittest.TestCase):
    def test_ascii_with_crlf(self):
        out = encode_outbound("hello", DisplayFormat.ASCII, append_crlf=True)
        self.assertEqual(out, b"hello\r\n")
        self.assertEqual(len(out), 7)

    def test_ascii_without_crlf(self):
        self.assertEqual(encode_outbound("AT", DisplayFormat.ASCII), b"AT")

    def test_ascii_rejects_non_ascii(self):
        with self.assertRaises(NonAsciiInputError) as ctx:
            encode_outbound("café", DisplayFormat.ASCII)
        self.assertEqual(ctx.exception.index, 3)
        self.assertIsInstance(ctx.exception, FormatError)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_hex_pairs_become_bytes(self):
        self.assertEqual(encode_outbound("48 65 6c 6C 6f", DisplayFormat.Hex), b"Hello")

    def test_hex_counts_bytes_not_characters(self):
        self.assertEqual(encode_outbound("AB", DisplayFormat.Hex), b"\xab")

    def test_hex_ignores_separators(self):
        self.assertEqual(encode_outbound("01:02-0a, FF", DisplayFormat.Hex), bytes([0x01, 0x02, 0x0A, 0xFF]))

    def test_hex_ignores_crlf_option(self):
        self.assertEqual(encode_outbound("0d0a", DisplayFormat.Hex, append_crlf=True), b"\r\n")

    def test_hex_odd_length_fails(self):
        for text in ("A", "ABC", "01 02 0", "a b c"):
            with self.subTest(text=text):
                with self.assertRaises(OddHexLengthError):
                    encode_outbound(text, DisplayFormat.Hex)

    def test_hex_without_digits_fails(self):
        with self.assertRaises(NoHexDigitsError):
            encode_outbound("GG", DisplayFormat.Hex)

    def test_empty_input(self):
        self.assertEqual(encode_outbound("", DisplayFormat.Hex), b"")
        self.assertEqual(encode_outbound("", DisplayFormat.ASCII, append_crlf=True), b"\r\n")


class TestDecodeInbound(unittest.TestCase):
    def test_hex_uppercase_space_separated(self):
        self.assertEqual(decode_inbound(bytes([0x48, 0x69]), DisplayFormat.Hex), "48 69")
        self.assertEqual(decode_inbound(bytes([0x0A, 0xFF, 0x00]), DisplayFormat.Hex), "0A FF 00")

    def test_ascii_one_char_per_byte(self):
        text = decode_inbound(b"A\x00\x7f\xff", DisplayFormat.ASCII)
        self.assertEqual(len(text), 4)
        self.assertEqual([ord(c) for c in text], [0x41, 0x00, 0x7F, 0xFF])

    def test_hex_roundtrip(self):
        for data in (b"", b"\x00", bytes(range(256)), b"\r\n\x7e\x7d"):
            with self.subTest(data=data):
                shown = decode_inbound(data, DisplayFormat.Hex)
                self.assertEqual(encode_outbound(shown, DisplayFormat.Hex), data)


class TestDisplayFormat(unittest.TestCase):
    def test_parse(self):
        self.assertIs(DisplayFormat.parse("HEX"), DisplayFormat.Hex)
        self.assertIs(DisplayFormat.parse(" ascii "), DisplayFormat.ASCII)
        self.assertIs(DisplayFormat.parse(DisplayFormat.Hex), DisplayFormat.Hex)
        with self.assertRaises(ValueError):
            DisplayFormat.parse("binary")


if __name__ == "__main__":
    unittest.main()

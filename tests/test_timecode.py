import unittest
import sys
import os

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mergesub.timecode import (
    parse_timecode, format_timecode, shift_timecode_line, canonical_timecode_line,
    split_timecode_line, make_fallback_timestamp,
)


class TestParseTimecode(unittest.TestCase):

    def test_comma_and_period_separators(self):
        self.assertEqual(parse_timecode("00:00:01,000"), 1000)
        self.assertEqual(parse_timecode("01:02:03.456"), 3723456)

    def test_surrounding_whitespace(self):
        self.assertEqual(parse_timecode("  00:00:01,500 \t"), 1500)

    def test_short_fraction_is_decimal(self):
        self.assertEqual(parse_timecode("00:00:01,5"), 1500)
        self.assertEqual(parse_timecode("00:00:01,05"), 1050)

    def test_missing_fraction(self):
        self.assertEqual(parse_timecode("00:00:07"), 7000)

    def test_single_digit_and_long_hours(self):
        self.assertEqual(parse_timecode("1:00:00,000"), 3600000)
        self.assertEqual(parse_timecode("100:00:00,000"), 360000000)

    def test_garbage_returns_none(self):
        for token in ["", "abc", "00:61:00,000", "00:00:60,000", "00:00:01,0000",
                      "-00:00:01,000", "00:00:01,000 --> 00:00:02,000", "00:01,000", None, 1000,
                      "9" * 5000 + ":00:00,000"]:
            with self.subTest(token=token):
                self.assertIsNone(parse_timecode(token))


class TestFormatTimecode(unittest.TestCase):

    def test_zero_padded(self):
        self.assertEqual(format_timecode(0), "00:00:00,000")
        self.assertEqual(format_timecode(3723456), "01:02:03,456")

    def test_floors_fractional_milliseconds(self):
        self.assertEqual(format_timecode(1500.9), "00:00:01,500")

    def test_negative_is_clamped(self):
        self.assertEqual(format_timecode(-5), "00:00:00,000")

    def test_non_finite_is_clamped(self):
        self.assertEqual(format_timecode(float("nan")), "00:00:00,000")

    def test_round_trip(self):
        for ms in [0, 1, 999, 1000, 59999, 60000, 3599999, 3600000, 4789980, 360000001]:
            with self.subTest(ms=ms):
                self.assertEqual(parse_timecode(format_timecode(ms)), ms)

    def test_canonical_form_of_well_formed_tokens(self):
        self.assertEqual(format_timecode(parse_timecode("1:02:03.5")), "01:02:03,500")
        self.assertEqual(format_timecode(parse_timecode("00:28:03,760")), "00:28:03,760")


class TestShiftTimecodeLine(unittest.TestCase):

    def test_shift(self):
        self.assertEqual(
            shift_timecode_line("00:00:01,000 --> 00:00:02,000", 1000),
            "00:00:02,000 --> 00:00:03,000")

    def test_normalizes_spacing_and_separator(self):
        self.assertEqual(
            shift_timecode_line("0:00:01.000-->00:00:02,000", 0),
            "00:00:01,000 --> 00:00:02,000")
        self.assertEqual(
            canonical_timecode_line("00:00:01,000    -->   00:00:02,000"),
            "00:00:01,000 --> 00:00:02,000")

    def test_unparseable_returns_none(self):
        for line in ["", "garbage", "00:00:01,000 -->", "--> 00:00:02,000",
                     "00:00:01,000 --> 00:00:02,000 --> 00:00:03,000",
                     "00:00:01,000 - 00:00:02,000", None]:
            with self.subTest(line=line):
                self.assertIsNone(shift_timecode_line(line, 500))

    def test_split(self):
        self.assertEqual(split_timecode_line("00:00:01,000 --> 00:00:02,500"), (1000, 2500))
        self.assertIsNone(split_timecode_line("nope"))


class TestFallbackTimestamp(unittest.TestCase):

    def test_anchored_on_previous_end(self):
        self.assertEqual(make_fallback_timestamp(5000, 3000, 200), "00:00:05,200 --> 00:00:06,200")

    def test_anchored_on_cumulative_offset(self):
        self.assertEqual(make_fallback_timestamp(1000, 8000, 200), "00:00:08,200 --> 00:00:09,200")

    def test_without_previous_end(self):
        self.assertEqual(make_fallback_timestamp(None, 0, 200), "00:00:00,200 --> 00:00:01,200")

    def test_custom_duration(self):
        self.assertEqual(make_fallback_timestamp(0, 0, 100, duration_ms=500), "00:00:00,100 --> 00:00:00,600")

    def test_always_parseable_and_strictly_after(self):
        for previous, cumulative, gap in [(0, 0, 0), (1000, 0, 0), (0, 7000, -50), (123456, 123456, 1)]:
            with self.subTest(previous=previous, cumulative=cumulative, gap=gap):
                times = split_timecode_line(make_fallback_timestamp(previous, cumulative, gap))
                self.assertIsNotNone(times)
                start, end = times
                self.assertGreater(start, max(previous, cumulative))
                self.assertGreater(end, start)


if __name__ == '__main__':
    unittest.main()

"""Tests for the tagged value decoder."""

import random
import struct
from decimal import ROUND_HALF_UP, Context, Decimal

import pytest

from senec_exporter.decoder import (
    SenecFormatError,
    decode,
    decode_float,
    decode_unsigned,
    hex_to_float,
    hex_to_int,
    split_tagged,
)


def _reference(hex_digits):
    """binary32 value of the big-endian bytes, rounded half away from zero."""
    value = struct.unpack(">f", bytes.fromhex(hex_digits))[0]
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP, context=Context(prec=60)))


class TestFloat:
    def test_battery_power_vector(self):
        # sign=0, e=0x87, m=0x5E8000 -> 0xDE8000 / 2**15
        assert decode("fl_43DE8000") == 445

    def test_zero(self):
        assert decode("fl_00000000") == 0

    def test_negative_zero(self):
        assert decode("fl_80000000") == 0

    def test_negative_value(self):
        assert decode("fl_C37A0000") == -250

    def test_lowercase_hex(self):
        assert decode("fl_42c80000") == 100

    def test_rounds_half_away_from_zero(self):
        assert decode("fl_40200000") == 3     # 2.5
        assert decode("fl_41280000") == 11    # 10.5
        assert decode("fl_C1280000") == -11   # -10.5

    def test_rounds_fraction_down(self):
        assert decode("fl_3ECCCCCD") == 0     # 0.4

    def test_subnormal(self):
        assert decode("fl_00000001") == 0
        assert decode("fl_00400000") == 0

    def test_max_exponent_is_not_special_cased(self):
        assert hex_to_float("7F800000") == 2 ** 128
        assert hex_to_float("FF800000") == -(2 ** 128)

    @pytest.mark.parametrize("hex_digits", [
        "43DE8000", "44BB8000", "C37A0000", "453B8000", "42640000",
        "3F800000", "BF800000", "3F7FFFFF", "4B7FFFFF", "CB000001",
        "461C4000", "C61C4000", "7F7FFFFF", "00800000", "3F000000",
        "BF000000", "3FC00000", "BFC00000", "40200000", "C0200000",
        "3EFFFFFF", "BEFFFFFF", "80000001", "FF7FFFFF", "4B000001",
    ])
    def test_matches_ieee_binary32(self, hex_digits):
        assert hex_to_float(hex_digits) == _reference(hex_digits)

    def test_random_bit_patterns_match_ieee_binary32(self):
        rng = random.Random(20261018)
        checked = 0
        while checked < 5000:
            bits = rng.getrandbits(32)
            if (bits >> 23) & 0xFF == 0xFF:
                # inf/NaN in IEEE, large finite values here
                continue
            hex_digits = f"{bits:08X}"
            assert hex_to_float(hex_digits) == _reference(hex_digits), hex_digits
            checked += 1

    @pytest.mark.parametrize("payload", ["", "12", "1234567", "123456789", "GGGGGGGG", "12 45678"])
    def test_bad_width_or_digits(self, payload):
        with pytest.raises(SenecFormatError):
            hex_to_float(payload)


class TestUnsigned:
    def test_u8(self):
        assert decode("u8_1A") == 26

    def test_variable_width(self):
        assert decode("u8_0") == 0
        assert decode("u8_FFFF") == 65535

    @pytest.mark.parametrize("payload", ["", "xyz", "+1", "1_0", " 1"])
    def test_rejects_non_hex(self, payload):
        with pytest.raises(SenecFormatError):
            hex_to_int(payload)


class TestTags:
    @pytest.mark.parametrize("tagged", ["xx_1234", "fl_12", "1234", "", "fl", "u8_", "st_HELLO"])
    def test_malformed(self, tagged):
        with pytest.raises(SenecFormatError):
            decode(tagged)

    def test_non_string(self):
        with pytest.raises(SenecFormatError):
            decode(None)

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode("xx_1234")

    def test_split(self):
        assert split_tagged("fl_43DE8000") == ("fl", "43DE8000")

    def test_forced_interpretations(self):
        assert decode_float("fl_43DE8000") == 445
        assert decode_unsigned("fl_43DE8000") == 0x43DE8000
        assert decode_unsigned("u8_03") == 3
        with pytest.raises(SenecFormatError):
            decode_float("u8_03")

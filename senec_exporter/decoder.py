"""SENEC tagged value decoder module.

This module handles:
- Splitting the appliance's tagged values (``fl_43DE8000``, ``u8_1A``) into
  type tag and hex payload
- Converting big-endian binary32 hex payloads into rounded numbers
- Converting unsigned integer hex payloads

Tagged value format:
- fl_XXXXXXXX: 32-bit IEEE-754 float, 8 hex digits, big-endian
- u8_XX...: unsigned integer, variable number of hex digits
"""

import math
import re
from typing import Tuple

FLOAT_TAG = "fl"
UNSIGNED_TAG = "u8"
KNOWN_TAGS = (FLOAT_TAG, UNSIGNED_TAG)

FLOAT_HEX_DIGITS = 8

_HEX_RE = re.compile(r"^[0-9A-Fa-f]+$")


class SenecFormatError(ValueError):
    """Exception raised for malformed or unrecognized tagged values."""
    pass


def split_tagged(tagged: str) -> Tuple[str, str]:
    """Split a tagged value into (tag, hex digits).

    Raises:
        SenecFormatError: If the value is not a string or the tag is unknown
    """
    if not isinstance(tagged, str):
        raise SenecFormatError(f"Tagged value must be a string, got {type(tagged).__name__}")

    tag, sep, digits = tagged.partition("_")
    if not sep or tag not in KNOWN_TAGS:
        raise SenecFormatError(f"Unrecognized tagged value: {tagged!r}")
    return tag, digits


def _round_half_away(value: float) -> int:
    # Half away from zero, the way the appliance web UI displays values
    if value.is_integer():
        return int(value)
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def hex_to_float(hex_digits: str) -> int:
    """Decode 8 big-endian hex digits as binary32 and round to an integer.

    The implicit leading bit is folded into the significand (``m << 1`` for
    subnormals, ``m | 0x800000`` otherwise) so the exponent offset is a flat
    -150. Exponent 0xFF is not special-cased.

    Args:
        hex_digits: Exactly 8 hex digits

    Returns:
        Decoded value rounded half away from zero

    Raises:
        SenecFormatError: If the payload is not 8 hex digits

    Example:
        >>> hex_to_float("43DE8000")
        445
    """
    if len(hex_digits) != FLOAT_HEX_DIGITS or not _HEX_RE.match(hex_digits):
        raise SenecFormatError(f"Float payload must be {FLOAT_HEX_DIGITS} hex digits, got {hex_digits!r}")

    raw = bytes.fromhex(hex_digits)
    bits = (raw[0] << 24) | (raw[1] << 16) | (raw[2] << 8) | raw[3]

    sign = -1.0 if bits >> 31 else 1.0
    exponent = (bits >> 23) & 0xFF
    mantissa = bits & 0x7FFFFF
    if exponent == 0:
        significand = mantissa << 1
    else:
        significand = mantissa | 0x800000

    return _round_half_away(sign * math.ldexp(significand, exponent - 150))


def hex_to_int(hex_digits: str) -> int:
    """Decode a non-empty run of hex digits as an unsigned integer.

    Raises:
        SenecFormatError: If the payload is empty or not hexadecimal
    """
    if not hex_digits or not _HEX_RE.match(hex_digits):
        raise SenecFormatError(f"Integer payload must be hex digits, got {hex_digits!r}")
    return int(hex_digits, 16)


def decode(tagged: str) -> int:
    """Decode a tagged value according to its own type tag.

    Args:
        tagged: Value as reported by the appliance, e.g. ``fl_43DE8000``

    Returns:
        Decoded number

    Raises:
        SenecFormatError: If the tag is unknown or the payload is malformed
    """
    tag, digits = split_tagged(tagged)
    if tag == FLOAT_TAG:
        return hex_to_float(digits)
    return hex_to_int(digits)


def decode_float(tagged: str) -> int:
    """Decode the payload of any known tag as a binary32 float."""
    _, digits = split_tagged(tagged)
    return hex_to_float(digits)


def decode_unsigned(tagged: str) -> int:
    """Decode the payload of any known tag as an unsigned integer."""
    _, digits = split_tagged(tagged)
    return hex_to_int(digits)


if __name__ == "__main__":
    # Quick self-check against struct's binary32 reading
    import struct
    import sys

    vectors = ["43DE8000", "00000000", "80000000", "3F800000", "C1200000", "42C80000", "00000001"]
    failed = 0
    for vector in vectors:
        expected = _round_half_away(struct.unpack(">f", bytes.fromhex(vector))[0])
        got = hex_to_float(vector)
        status = "OK" if got == expected else "FAILED"
        if got != expected:
            failed += 1
        print(f"fl_{vector}: {got} (expected {expected}) {status}")

    print(f"u8_1A: {decode('u8_1A')}")
    sys.exit(1 if failed else 0)

"""
Backup Checksum

A rolling 32-bit hash over the compact JSON text of a snapshot, kept
compatible with files written by the 2.3 web application:

    h = (h << 5) - h + code_unit     (wrapped to a signed 32-bit int)

iterated over UTF-16 code units and rendered as signed hexadecimal
("-1f3a", "7c0"). It detects accidental corruption only; it is not an
integrity or authenticity check.
"""

import json
from typing import Any


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def canonical_json(data: Any) -> str:
    """Compact JSON text the checksum is computed over."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def checksum_text(text: str) -> str:
    encoded = text.encode("utf-16-le", errors="surrogatepass")
    value = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        value = _to_int32((value << 5) - value + code_unit)
    return format(value, "x") if value >= 0 else "-" + format(-value, "x")


def generate_checksum(data: Any) -> str:
    """Checksum of a JSON-ready value."""
    return checksum_text(canonical_json(data))

"""
Chain-link hashing for memory blocks.

A 32-bit rolling checksum (h = h*31 + c over UTF-16 code units), rendered as
the absolute value in hex. It marks chain links for display and advisory
integrity checks only; it is not collision resistant.
"""

import json
from typing import Any

_MASK_32 = 0xFFFFFFFF
_SIGN_BIT = 0x80000000


def chain_hash(data: str) -> str:
    """Deterministic non-cryptographic hash of a string (empty string -> '0')"""
    h = 0
    units = data.encode("utf-16-le")
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        h = ((h << 5) - h + code) & _MASK_32

    # Reinterpret as signed 32-bit before taking the magnitude
    if h & _SIGN_BIT:
        h -= 1 << 32
    return format(abs(h), "x")


def canonical_json(obj: Any) -> str:
    """Compact, insertion-ordered JSON used as hash input"""
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)

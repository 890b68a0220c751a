"""
Prefixed, time-ordered identifiers

Ids look like ``tdr_0190a1b2c3d4e5f6a7b8c9d0e1``: a short entity prefix, the
creation time in milliseconds (12 hex digits) and 64 random bits. Ids minted
in different milliseconds of wall-clock time sort lexically in creation order.
Ids minted within the same millisecond order by their random bits, so that
order is arbitrary, and a clock step backwards breaks the ordering too.
"""

import secrets
import time

PREFIXES = {
    "company": "cmp",
    "user": "usr",
    "goods_service": "gsv",
    "tender": "tdr",
    "application": "app",
}


def generate_id(kind: str) -> str:
    """
    Generate an id for the given entity kind

    Args:
        kind: One of the keys of PREFIXES

    Raises:
        KeyError: If kind is unknown
    """
    prefix = PREFIXES[kind]
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    return f"{prefix}_{timestamp_ms:012x}{secrets.randbits(64):016x}"

"""
competitive/identifiers.py

Analysis identifier normalization shared by backend calls and cache keys.
"""

from __future__ import annotations

import time

VENDOR_ID_PREFIX = "comp_"


def normalize_analysis_id(value: str | int) -> str:
    """
    Return the prefix-free string form of an analysis identifier.

    Idempotent: normalizing an already normalized id returns it unchanged.
    """

    text = str(value).strip()
    while text.startswith(VENDOR_ID_PREFIX):
        text = text[len(VENDOR_ID_PREFIX):]
    return text


def new_analysis_id() -> str:
    """
    Client-side identifier for results the backend did not identify (epoch milliseconds).
    """

    return str(int(time.time() * 1000))

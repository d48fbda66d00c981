"""
competitive/domains.py

Bare hostname extraction used for display and grouping.
"""

from __future__ import annotations

from urllib.parse import urlsplit


def extract_domain(url: str) -> str:
    """
    Return the hostname of `url` without a leading ``www.``.

    A missing scheme is treated as https. When the value cannot be parsed
    into a hostname the original input is returned unchanged.
    """

    if not isinstance(url, str):
        return url
    candidate = url.strip()
    if not candidate:
        return url
    if "://" not in candidate:
        candidate = f"https://{candidate}"

    try:
        parsed = urlsplit(candidate)
        # Accessing .port validates the authority section.
        parsed.port
        hostname = parsed.hostname
    except ValueError:
        return url

    if not hostname:
        return url
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return hostname


def normalize_target_url(url: str) -> str:
    """
    Canonical key for a submission target: scheme-qualified, lower-cased, no trailing slash.
    """

    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    return candidate.rstrip("/").lower()

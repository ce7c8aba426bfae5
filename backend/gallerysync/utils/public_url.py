"""Public folder link validation."""

from __future__ import annotations

import re

from gallerysync.errors import DomainException, EmptyField, InvalidPublicUrl, InvalidUrl

PUBLIC_URL_PATTERNS = (
    re.compile(r"^https://disk\.yandex\.ru/d/[a-zA-Z0-9_-]+.*$"),
    re.compile(r"^https://disk\.yandex\.com/d/[a-zA-Z0-9_-]+.*$"),
    re.compile(r"^https://yadi\.sk/d/[a-zA-Z0-9_-]+.*$"),
)

SUSPICIOUS_FRAGMENTS = ("<script", "javascript:", "data:", "<img", "onerror", "onclick")


def normalize_public_url(url: str) -> str:
    """Force the https scheme, adding it when missing."""
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    if not url.startswith("https://"):
        return "https://" + url
    return url


def validate_public_url(url: str | None) -> str:
    """Return the normalized link or raise ``DomainException``.

    Blank input -> EmptyField, unknown host/shape -> InvalidPublicUrl,
    markup or script fragments -> InvalidUrl.
    """
    trimmed = (url or "").strip()
    if not trimmed:
        raise DomainException(EmptyField("public_folder_url"))

    normalized = normalize_public_url(trimmed)
    if not any(p.match(normalized) for p in PUBLIC_URL_PATTERNS):
        raise DomainException(InvalidPublicUrl(trimmed))

    lowered = normalized.lower()
    if any(fragment in lowered for fragment in SUSPICIOUS_FRAGMENTS):
        raise DomainException(InvalidUrl(trimmed))
    return normalized

"""
Base-URL normalisation for the API and the static/upload server.
"""

from __future__ import annotations

import re
from typing import Optional

from config.settings import config

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_PLAIN_HTTP = re.compile(r"^http://", re.IGNORECASE)


def strip_trailing_slash(value: str) -> str:
    return value.rstrip("/")


def is_mixed_content_url(value: str, secure_origin: Optional[bool] = None) -> bool:
    """True when a plain-http url would be loaded from a secure origin."""
    secure = config.secure_origin if secure_origin is None else secure_origin
    return bool(secure and _PLAIN_HTTP.match(value))


def normalize_base_url(
    value: Optional[str],
    fallback: str,
    *,
    secure_origin: Optional[bool] = None,
) -> str:
    raw = (value or "").strip()
    if not raw or is_mixed_content_url(raw, secure_origin):
        return fallback
    return strip_trailing_slash(raw)


def api_base_url() -> str:
    return normalize_base_url(config.api_base_url, "/api")


def server_base_url() -> str:
    return normalize_base_url(config.server_base_url, api_base_url())


def to_server_url(
    path: Optional[str],
    *,
    base: Optional[str] = None,
    secure_origin: Optional[bool] = None,
) -> Optional[str]:
    """
    Resolve an avatar/upload path returned by the backend to a full URL.

    Absolute urls pass through unless they are mixed content, in which case
    ``None`` is returned.
    """
    if not path:
        return None
    if _ABSOLUTE_URL.match(path):
        return None if is_mixed_content_url(path, secure_origin) else path
    root = base if base is not None else server_base_url()
    return f"{root}{path if path.startswith('/') else '/' + path}"

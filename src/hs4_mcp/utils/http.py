"""Shared HTTP utilities."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

_BASE_URL_ALLOWED_SCHEMES = frozenset({"http", "https"})
_CREDENTIAL_QUERY_KEYS = frozenset({"user", "pass"})


def normalize_base_url(value: str) -> str:
    """Normalize the HS4 base URL.

    Userinfo and ``user``/``pass`` query parameters are stripped; credentials
    are supplied separately through HS4_USER/HS4_PASS.
    """
    candidate = value.strip()
    if not candidate:
        raise ValueError("base_url must not be empty")

    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in _BASE_URL_ALLOWED_SCHEMES:
        raise ValueError("base_url must use http or https")
    if not parsed.hostname:
        raise ValueError("base_url must include host")

    netloc = parsed.hostname
    if parsed.port is not None:
        netloc = f"{netloc}:{parsed.port}"
    query = urlencode(
        [(k, v) for k, v in parse_qsl(parsed.query) if k.lower() not in _CREDENTIAL_QUERY_KEYS]
    )
    normalized_path = parsed.path.rstrip("/")
    return urlunparse((parsed.scheme.lower(), netloc, normalized_path, "", query, ""))


def sanitize_url_for_log(url: httpx.URL) -> str:
    """Render a request URL without userinfo or credential query parameters."""
    cleaned = url
    for key in url.params.keys():
        if key.lower() in _CREDENTIAL_QUERY_KEYS:
            cleaned = cleaned.copy_remove_param(key)
    return str(cleaned)

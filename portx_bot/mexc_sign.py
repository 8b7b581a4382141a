"""Helpers for signing MEXC Futures API requests."""

from __future__ import annotations

import hashlib
import hmac
import time
from urllib.parse import urlencode


def build_query(params: dict[str, object]) -> str:
    """Build deterministic query string without None values."""
    filtered = {k: v for k, v in params.items() if v is not None}
    return urlencode(sorted(filtered.items()), doseq=True)


def sign_payload(secret: str, payload: str) -> str:
    """Return HMAC SHA256 hex digest for payload."""
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def signed_headers(api_key: str, api_secret: str, query: str = "", request_time: int | None = None) -> dict[str, str]:
    """Headers for a private contract call: signature over key + time + params."""
    req_time = str(request_time if request_time is not None else int(time.time() * 1000))
    signature = sign_payload(api_secret, f"{api_key}{req_time}{query}")
    return {
        "ApiKey": api_key,
        "Request-Time": req_time,
        "Signature": signature,
        "Content-Type": "application/json",
    }

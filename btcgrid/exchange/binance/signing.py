"""Binance request signing (HMAC-SHA256 over the query string)."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from urllib.parse import urlencode


def sign_query(query: str, secret_key: str) -> str:
    """Hex HMAC-SHA256 signature of ``query`` keyed by ``secret_key``."""
    return hmac.new(
        secret_key.encode("utf-8"),
        query.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def build_signed_query(
    params: Mapping[str, str],
    secret_key: str,
    timestamp_ms: int,
    recv_window_ms: int,
) -> str:
    """Encode params, append timestamp/recvWindow, then the signature.

    The signature must be the last parameter and must cover every byte
    that precedes it.
    """
    query = urlencode(
        [
            *params.items(),
            ("timestamp", str(timestamp_ms)),
            ("recvWindow", str(recv_window_ms)),
        ]
    )
    return f"{query}&signature={sign_query(query, secret_key)}"

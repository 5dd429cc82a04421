"""Exchange error hierarchy.

All gateway-related exceptions inherit from ExchangeError, enabling
clean exception handling at the gateway boundary.

Retry classes used by the control loops:
- transport (connection, timeout, malformed response): retried next cycle
- business "unknown order": terminal for the order concerned
- any other business error: retried next cycle
"""

from __future__ import annotations

# Binance: "Unknown order sent." -- order filled, cancelled or never existed
UNKNOWN_ORDER_CODE = -2011
_UNKNOWN_ORDER_TEXT = "unknown order"


class ExchangeError(Exception):
    """Base exception for all exchange-related errors."""


class ExchangeConnectionError(ExchangeError):
    """Transport failures: DNS, refused connection, dropped socket."""


class ExchangeTimeoutError(ExchangeError):
    """Request timeout when communicating with the exchange."""


class ExchangeResponseError(ExchangeError):
    """Response body could not be decoded into the expected shape."""


class ExchangeAuthError(ExchangeError):
    """Invalid or missing API credentials (HTTP 401/403)."""


class ExchangeNotConnectedError(ExchangeError):
    """Method called before connect() was called."""


class ExchangeAPIError(ExchangeError):
    """Business error reported by the exchange.

    Stores the HTTP status, the exchange error code and its message.
    """

    def __init__(self, status_code: int, code: int, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"Exchange API error {status_code} ({code}): {message}")

    @property
    def is_unknown_order(self) -> bool:
        """True when the order no longer exists on the exchange."""
        return (
            self.code == UNKNOWN_ORDER_CODE
            or _UNKNOWN_ORDER_TEXT in self.message.lower()
        )


def is_unknown_order(exc: BaseException) -> bool:
    """Check whether an exception means the order is gone from the book."""
    return isinstance(exc, ExchangeAPIError) and exc.is_unknown_order

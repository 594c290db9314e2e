from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

Json = Dict[str, Any]

# Error codes surfaced verbatim to callers.
OWNER_ONLY = "owner_only"
NOT_AUTHORIZED = "not_authorized"
INVALID_AMOUNT = "invalid_amount"
PROVIDER_NOT_FOUND = "provider_not_found"
LISTING_NOT_FOUND = "listing_not_found"
INSUFFICIENT_FUNDS = "insufficient_funds"
ALREADY_REGISTERED = "already_registered"
INVALID_PAYLOAD = "invalid_payload"
TX_UNIMPLEMENTED = "tx_unimplemented"


@dataclass
class MarketError(Exception):
    """Canonical error type for admission, apply and dispatch failures."""

    code: str
    reason: str
    details: Json = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover
        if not self.details:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"

    def to_json(self) -> Json:
        return {"ok": False, "error": self.code, "reason": self.reason, "details": dict(self.details)}

    @staticmethod
    def owner_only(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(OWNER_ONLY, reason, details or {})

    @staticmethod
    def not_authorized(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(NOT_AUTHORIZED, reason, details or {})

    @staticmethod
    def invalid_amount(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(INVALID_AMOUNT, reason, details or {})

    @staticmethod
    def provider_not_found(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(PROVIDER_NOT_FOUND, reason, details or {})

    @staticmethod
    def listing_not_found(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(LISTING_NOT_FOUND, reason, details or {})

    @staticmethod
    def insufficient_funds(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(INSUFFICIENT_FUNDS, reason, details or {})

    @staticmethod
    def already_registered(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(ALREADY_REGISTERED, reason, details or {})

    @staticmethod
    def invalid_payload(reason: str, details: Optional[Json] = None) -> "MarketError":
        return MarketError(INVALID_PAYLOAD, reason, details or {})


class ExecutorError(RuntimeError):
    pass

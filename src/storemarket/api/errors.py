from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from storemarket.runtime.errors import (
    ALREADY_REGISTERED,
    INSUFFICIENT_FUNDS,
    INVALID_AMOUNT,
    INVALID_PAYLOAD,
    LISTING_NOT_FOUND,
    NOT_AUTHORIZED,
    OWNER_ONLY,
    PROVIDER_NOT_FOUND,
    TX_UNIMPLEMENTED,
    MarketError,
)

_STATUS_BY_CODE: Dict[str, int] = {
    INVALID_AMOUNT: 400,
    INVALID_PAYLOAD: 400,
    TX_UNIMPLEMENTED: 400,
    OWNER_ONLY: 403,
    NOT_AUTHORIZED: 403,
    PROVIDER_NOT_FOUND: 404,
    LISTING_NOT_FOUND: 404,
    ALREADY_REGISTERED: 409,
    INSUFFICIENT_FUNDS: 402,
}


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": dict(self.details)}}

    @staticmethod
    def unauthorized(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(401, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_market_error(e: MarketError) -> "ApiError":
        # Unknown codes (e.g. invalid_state) are operator problems, not caller problems.
        status = _STATUS_BY_CODE.get(e.code, 500)
        return ApiError(status, e.code, e.reason, dict(e.details))

import os
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "testnet" | "prod"
    # Trusted gateway header carrying the authenticated caller identity.
    caller_header: str
    cors_origins: List[str]


def _parse_cors_origins(mode: str) -> List[str]:
    """Parse CORS origins with production-safe defaults.

    Policy:
      - If STOREMARKET_CORS_ORIGINS is unset/empty -> CORS disabled (fail-closed)
      - Wildcard "*" is rejected in prod
      - In non-prod modes, "*" is allowed for convenience
    """
    raw = os.environ.get("STOREMARKET_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in STOREMARKET_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def load_api_config() -> ApiConfig:
    mode = os.getenv("STOREMARKET_MODE", "prod").strip().lower()
    header = os.getenv("STOREMARKET_CALLER_HEADER", "X-Market-Caller").strip() or "X-Market-Caller"
    return ApiConfig(mode=mode, caller_header=header, cors_origins=_parse_cors_origins(mode))

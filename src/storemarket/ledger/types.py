"""storemarket.ledger.types

Typed records for the market ledger.

State is persisted as a JSON-backed dict; these dataclasses are the only
shapes domain code reads and writes. Each record converts to/from its
JSON form with strict coercion so a corrupt snapshot fails loudly instead
of silently turning into zeros.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from storemarket.ledger import constants as C

Json = Dict[str, Any]

HASH_BYTES = 32


def _coerce_int(v: Any, *, field: str) -> int:
    try:
        # bool is an int subclass; disallow it explicitly
        if isinstance(v, bool):
            raise ValueError("bool is not a valid int")
        return int(v)
    except Exception as e:
        raise ValueError(f"record schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


def _coerce_str(v: Any, *, field: str) -> str:
    if v is None:
        return ""
    if not isinstance(v, (str, int)):
        raise ValueError(f"record schema error: field '{field}' must be str (got {type(v).__name__})")
    return str(v)


def _coerce_bool(v: Any, *, field: str) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, int) and v in (0, 1):
        return bool(v)
    raise ValueError(f"record schema error: field '{field}' must be bool (got {type(v).__name__})")


def _coerce_hash(v: Any, *, field: str) -> bytes:
    if isinstance(v, (bytes, bytearray)):
        raw = bytes(v)
    else:
        try:
            raw = bytes.fromhex(_coerce_str(v, field=field))
        except ValueError as e:
            raise ValueError(f"record schema error: field '{field}' must be hex") from e
    if len(raw) != HASH_BYTES:
        raise ValueError(f"record schema error: field '{field}' must be {HASH_BYTES} bytes (got {len(raw)})")
    return raw


def clamp_reputation(score: int) -> int:
    return max(C.REPUTATION_MIN, min(C.REPUTATION_MAX, int(score)))


class ContractStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED_USER = "resolved_user"
    RESOLVED_PROVIDER = "resolved_provider"
    DISPUTE_BY_USER = "dispute_by_user"
    DISPUTE_BY_PROVIDER = "dispute_by_provider"
    AUTO_RESOLVED = "auto_resolved"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {ContractStatus.RESOLVED_USER, ContractStatus.RESOLVED_PROVIDER, ContractStatus.AUTO_RESOLVED}


@dataclass(frozen=True, slots=True)
class Provider:
    provider_id: str
    available_space: int
    price_per_mb: int
    reputation_score: int
    total_completed: int
    active: bool

    def to_json(self) -> Json:
        return {
            "provider_id": self.provider_id,
            "available_space": int(self.available_space),
            "price_per_mb": int(self.price_per_mb),
            "reputation_score": clamp_reputation(self.reputation_score),
            "total_completed": int(self.total_completed),
            "active": bool(self.active),
        }

    @classmethod
    def from_json(cls, j: Json) -> "Provider":
        return cls(
            provider_id=_coerce_str(j.get("provider_id"), field="provider_id"),
            available_space=_coerce_int(j.get("available_space"), field="available_space"),
            price_per_mb=_coerce_int(j.get("price_per_mb"), field="price_per_mb"),
            reputation_score=clamp_reputation(_coerce_int(j.get("reputation_score"), field="reputation_score")),
            total_completed=_coerce_int(j.get("total_completed", 0), field="total_completed"),
            active=_coerce_bool(j.get("active"), field="active"),
        )


@dataclass(frozen=True, slots=True)
class Listing:
    listing_id: int
    provider: str
    space_mb: int
    price_per_block: int
    min_blocks: int
    max_blocks: int
    available: bool

    def to_json(self) -> Json:
        return {
            "listing_id": int(self.listing_id),
            "provider": self.provider,
            "space_mb": int(self.space_mb),
            "price_per_block": int(self.price_per_block),
            "min_blocks": int(self.min_blocks),
            "max_blocks": int(self.max_blocks),
            "available": bool(self.available),
        }

    @classmethod
    def from_json(cls, j: Json) -> "Listing":
        return cls(
            listing_id=_coerce_int(j.get("listing_id"), field="listing_id"),
            provider=_coerce_str(j.get("provider"), field="provider"),
            space_mb=_coerce_int(j.get("space_mb"), field="space_mb"),
            price_per_block=_coerce_int(j.get("price_per_block"), field="price_per_block"),
            min_blocks=_coerce_int(j.get("min_blocks"), field="min_blocks"),
            max_blocks=_coerce_int(j.get("max_blocks"), field="max_blocks"),
            available=_coerce_bool(j.get("available"), field="available"),
        )


@dataclass(frozen=True, slots=True)
class StorageContract:
    contract_id: int
    provider: str
    user: str
    listing_id: int
    space_mb: int
    price_per_block: int
    start_time: int
    end_time: int
    total_payment: int
    status: ContractStatus

    def to_json(self) -> Json:
        return {
            "contract_id": int(self.contract_id),
            "provider": self.provider,
            "user": self.user,
            "listing_id": int(self.listing_id),
            "space_mb": int(self.space_mb),
            "price_per_block": int(self.price_per_block),
            "start_time": int(self.start_time),
            "end_time": int(self.end_time),
            "total_payment": int(self.total_payment),
            "status": self.status.value,
        }

    @classmethod
    def from_json(cls, j: Json) -> "StorageContract":
        return cls(
            contract_id=_coerce_int(j.get("contract_id"), field="contract_id"),
            provider=_coerce_str(j.get("provider"), field="provider"),
            user=_coerce_str(j.get("user"), field="user"),
            listing_id=_coerce_int(j.get("listing_id"), field="listing_id"),
            space_mb=_coerce_int(j.get("space_mb"), field="space_mb"),
            price_per_block=_coerce_int(j.get("price_per_block"), field="price_per_block"),
            start_time=_coerce_int(j.get("start_time"), field="start_time"),
            end_time=_coerce_int(j.get("end_time"), field="end_time"),
            total_payment=_coerce_int(j.get("total_payment"), field="total_payment"),
            status=ContractStatus(_coerce_str(j.get("status"), field="status")),
        )


@dataclass(frozen=True, slots=True)
class FileMetadata:
    contract_id: int
    file_id: int
    file_hash: bytes
    file_size_mb: int
    file_name: str
    encryption_key_hash: bytes

    def to_json(self) -> Json:
        return {
            "contract_id": int(self.contract_id),
            "file_id": int(self.file_id),
            "file_hash": self.file_hash.hex(),
            "file_size_mb": int(self.file_size_mb),
            "file_name": self.file_name,
            "encryption_key_hash": self.encryption_key_hash.hex(),
        }

    @classmethod
    def from_json(cls, j: Json) -> "FileMetadata":
        return cls(
            contract_id=_coerce_int(j.get("contract_id"), field="contract_id"),
            file_id=_coerce_int(j.get("file_id"), field="file_id"),
            file_hash=_coerce_hash(j.get("file_hash"), field="file_hash"),
            file_size_mb=_coerce_int(j.get("file_size_mb"), field="file_size_mb"),
            file_name=_coerce_str(j.get("file_name"), field="file_name"),
            encryption_key_hash=_coerce_hash(j.get("encryption_key_hash"), field="encryption_key_hash"),
        )


@dataclass(frozen=True, slots=True)
class DisputeRecord:
    """Last resolve call recorded against a contract (owner visibility)."""

    contract_id: int
    filed_by: str
    dispute_type: str
    evidence: str
    resolution_request: str
    outcome: ContractStatus
    refund: int
    at_height: int

    def to_json(self) -> Json:
        return {
            "contract_id": int(self.contract_id),
            "filed_by": self.filed_by,
            "dispute_type": self.dispute_type,
            "evidence": self.evidence,
            "resolution_request": self.resolution_request,
            "outcome": self.outcome.value,
            "refund": int(self.refund),
            "at_height": int(self.at_height),
        }

    @classmethod
    def from_json(cls, j: Json) -> "DisputeRecord":
        return cls(
            contract_id=_coerce_int(j.get("contract_id"), field="contract_id"),
            filed_by=_coerce_str(j.get("filed_by"), field="filed_by"),
            dispute_type=_coerce_str(j.get("dispute_type"), field="dispute_type"),
            evidence=_coerce_str(j.get("evidence"), field="evidence"),
            resolution_request=_coerce_str(j.get("resolution_request"), field="resolution_request"),
            outcome=ContractStatus(_coerce_str(j.get("outcome"), field="outcome")),
            refund=_coerce_int(j.get("refund", 0), field="refund"),
            at_height=_coerce_int(j.get("at_height", 0), field="at_height"),
        )


__all__ = [
    "ContractStatus",
    "DisputeRecord",
    "FileMetadata",
    "HASH_BYTES",
    "Json",
    "Listing",
    "Provider",
    "StorageContract",
    "clamp_reputation",
]

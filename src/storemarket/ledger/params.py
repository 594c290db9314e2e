from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from storemarket.ledger import constants as C
from storemarket.runtime.errors import MarketError

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


@dataclass(frozen=True, slots=True)
class MarketParams:
    """Platform parameters written into state["params"] at genesis."""

    owner_id: str
    custody_id: str
    fee_rate: int = C.FEE_RATE
    fee_denominator: int = C.FEE_DENOMINATOR
    min_rental_blocks: int = C.MIN_RENTAL_BLOCKS
    baseline_reputation: int = C.BASELINE_REPUTATION
    evidence_autoresolve_bytes: int = C.EVIDENCE_AUTORESOLVE_BYTES
    arbitration_refund_pct: int = C.ARBITRATION_REFUND_PCT
    auto_refund_pct: int = C.AUTO_REFUND_PCT
    max_file_name_len: int = C.MAX_FILE_NAME_LEN

    def platform_fee(self, total_cost: int) -> int:
        # Floor division on non-negative ints is floor semantics.
        return (int(total_cost) * self.fee_rate) // self.fee_denominator

    @staticmethod
    def share(amount: int, pct: int) -> int:
        return (int(amount) * int(pct)) // 100

    def to_json(self) -> Json:
        return {
            "owner_id": self.owner_id,
            "custody_id": self.custody_id,
            "fee_rate": int(self.fee_rate),
            "fee_denominator": int(self.fee_denominator),
            "min_rental_blocks": int(self.min_rental_blocks),
            "baseline_reputation": int(self.baseline_reputation),
            "evidence_autoresolve_bytes": int(self.evidence_autoresolve_bytes),
            "arbitration_refund_pct": int(self.arbitration_refund_pct),
            "auto_refund_pct": int(self.auto_refund_pct),
            "max_file_name_len": int(self.max_file_name_len),
        }

    @classmethod
    def from_state(cls, state: Json) -> "MarketParams":
        """Read params from state; owner and custody are mandatory."""
        p = state.get("params")
        p = p if isinstance(p, dict) else {}

        owner_id = _as_str(p.get("owner_id"))
        custody_id = _as_str(p.get("custody_id"))
        if not owner_id or not custody_id:
            raise MarketError("invalid_state", "missing_platform_params", {"owner_id": owner_id, "custody_id": custody_id})

        return cls(
            owner_id=owner_id,
            custody_id=custody_id,
            fee_rate=_as_int(p.get("fee_rate"), C.FEE_RATE),
            fee_denominator=_as_int(p.get("fee_denominator"), C.FEE_DENOMINATOR),
            min_rental_blocks=_as_int(p.get("min_rental_blocks"), C.MIN_RENTAL_BLOCKS),
            baseline_reputation=_as_int(p.get("baseline_reputation"), C.BASELINE_REPUTATION),
            evidence_autoresolve_bytes=_as_int(p.get("evidence_autoresolve_bytes"), C.EVIDENCE_AUTORESOLVE_BYTES),
            arbitration_refund_pct=_as_int(p.get("arbitration_refund_pct"), C.ARBITRATION_REFUND_PCT),
            auto_refund_pct=_as_int(p.get("auto_refund_pct"), C.AUTO_REFUND_PCT),
            max_file_name_len=_as_int(p.get("max_file_name_len"), C.MAX_FILE_NAME_LEN),
        )


__all__ = ["MarketParams"]

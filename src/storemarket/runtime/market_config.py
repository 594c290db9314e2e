# src/storemarket/runtime/market_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from storemarket.env import load_dotenv_if_present
from storemarket.ledger import constants as C
from storemarket.ledger.params import MarketParams

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_balances(v: Any, default: Dict[str, int]) -> Dict[str, int]:
    if v is None:
        return dict(default)
    if not isinstance(v, dict):
        raise ValueError("genesis_balances must be a mapping of account -> int")
    out: Dict[str, int] = {}
    for k, amt in v.items():
        if isinstance(amt, bool) or not isinstance(amt, int):
            raise ValueError(f"genesis_balances[{k!r}] must be an int; got: {amt!r}")
        out[str(k)] = int(amt)
    return out


@dataclass(frozen=True)
class MarketConfig:
    market_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Empty path = in-memory store (nothing survives a restart).
    db_path: str

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

    genesis_balances: Dict[str, int] = field(default_factory=dict)

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: str = "INFO"

    def to_params(self) -> MarketParams:
        return MarketParams(
            owner_id=self.owner_id,
            custody_id=self.custody_id,
            fee_rate=int(self.fee_rate),
            fee_denominator=int(self.fee_denominator),
            min_rental_blocks=int(self.min_rental_blocks),
            baseline_reputation=int(self.baseline_reputation),
            evidence_autoresolve_bytes=int(self.evidence_autoresolve_bytes),
            arbitration_refund_pct=int(self.arbitration_refund_pct),
            auto_refund_pct=int(self.auto_refund_pct),
            max_file_name_len=int(self.max_file_name_len),
        )


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_market_config(cfg: MarketConfig) -> None:
    """Fail-fast validation for operator config."""

    for name in ("market_id", "owner_id", "custody_id"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    if cfg.owner_id == cfg.custody_id:
        raise ValueError("owner_id and custody_id must differ")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.fee_denominator) <= 0:
        raise ValueError(f"fee_denominator must be > 0; got: {cfg.fee_denominator}")
    if int(cfg.fee_rate) < 0 or int(cfg.fee_rate) >= int(cfg.fee_denominator):
        raise ValueError(f"fee_rate must be in [0, fee_denominator); got: {cfg.fee_rate}")

    for name in ("arbitration_refund_pct", "auto_refund_pct", "baseline_reputation"):
        v = int(getattr(cfg, name))
        if v < 0 or v > 100:
            raise ValueError(f"{name} must be 0..100; got: {v}")

    for name in ("min_rental_blocks", "evidence_autoresolve_bytes", "max_file_name_len"):
        v = int(getattr(cfg, name))
        if v <= 0:
            raise ValueError(f"{name} must be > 0; got: {v}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    for acct, amt in cfg.genesis_balances.items():
        if int(amt) < 0:
            raise ValueError(f"genesis_balances[{acct!r}] must be >= 0; got: {amt}")


def default_market_config() -> MarketConfig:
    return MarketConfig(
        market_id="storemarket-dev",
        mode="prod",
        db_path="",
        owner_id="market-owner",
        custody_id="market-custody",
    )


def _load_raw(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    return json.loads(text)


def market_config_from_dict(raw: Json) -> MarketConfig:
    d = default_market_config()

    cfg = replace(
        d,
        market_id=_as_str(raw.get("market_id"), d.market_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=str(raw.get("db_path") or d.db_path),
        owner_id=_as_str(raw.get("owner_id"), d.owner_id),
        custody_id=_as_str(raw.get("custody_id"), d.custody_id),
        fee_rate=_as_int(raw.get("fee_rate"), d.fee_rate),
        fee_denominator=_as_int(raw.get("fee_denominator"), d.fee_denominator),
        min_rental_blocks=_as_int(raw.get("min_rental_blocks"), d.min_rental_blocks),
        baseline_reputation=_as_int(raw.get("baseline_reputation"), d.baseline_reputation),
        evidence_autoresolve_bytes=_as_int(raw.get("evidence_autoresolve_bytes"), d.evidence_autoresolve_bytes),
        arbitration_refund_pct=_as_int(raw.get("arbitration_refund_pct"), d.arbitration_refund_pct),
        auto_refund_pct=_as_int(raw.get("auto_refund_pct"), d.auto_refund_pct),
        max_file_name_len=_as_int(raw.get("max_file_name_len"), d.max_file_name_len),
        genesis_balances=_as_balances(raw.get("genesis_balances"), d.genesis_balances),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )

    validate_market_config(cfg)
    return cfg


def read_market_config_file(path: str) -> MarketConfig:
    """Read a JSON or YAML (.yaml/.yml) config file over the defaults."""
    raw = _load_raw(Path(path))
    if not isinstance(raw, dict):
        raise ValueError("market config must be a mapping at the top level")
    return market_config_from_dict(raw)


def load_market_config(*, config_path: Optional[str] = None) -> MarketConfig:
    load_dotenv_if_present()

    p = config_path or os.environ.get("STOREMARKET_CONFIG_PATH")
    if p:
        return read_market_config_file(p)

    cfg = default_market_config()
    validate_market_config(cfg)
    return cfg


__all__ = [
    "MarketConfig",
    "default_market_config",
    "load_market_config",
    "market_config_from_dict",
    "read_market_config_file",
    "validate_market_config",
]

from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Optional, Tuple

from storemarket.ledger import constants as C
from storemarket.runtime.domain_dispatch import SUPPORTED_TX_TYPES
from storemarket.runtime.tx_admission_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")

# Required payload keys that must be plain ints (bool rejected).
_INT_KEYS: Dict[str, Tuple[str, ...]] = {
    "PROVIDER_REGISTER": ("available_space", "price_per_mb"),
    "PROVIDER_UPDATE": ("available_space", "price_per_mb"),
    "LISTING_CREATE": ("space_mb", "price_per_block", "min_blocks", "max_blocks"),
    "STORAGE_PURCHASE": ("listing_id", "blocks", "file_size_mb"),
    "DISPUTE_RESOLVE": ("contract_id",),
    "CUSTODY_SWEEP": ("amount",),
}

# Optional payload keys that must be strings when present.
_STR_KEYS: Dict[str, Tuple[str, ...]] = {
    "STORAGE_PURCHASE": ("file_hash", "file_name", "encryption_key_hash"),
    "DISPUTE_RESOLVE": ("dispute_type", "evidence", "resolution_request"),
    "CUSTODY_SWEEP": ("to",),
}


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return int(default)
    try:
        return int(str(v).strip())
    except Exception:
        return int(default)


def _normalize_jsonable(obj: Any) -> Any:
    if obj is None:
        return None
    if isinstance(obj, (dict, list, str, int, float, bool)):
        return obj
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return to_json()
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        return model_dump()
    return obj


def _json_size_bytes(obj: Any) -> int:
    """Compute JSON byte size. If not serializable, return -1 (unknown)."""
    try:
        norm = _normalize_jsonable(obj)
        return len(json.dumps(norm, separators=(",", ":"), ensure_ascii=False, sort_keys=True).encode("utf-8"))
    except (TypeError, ValueError):
        return -1


def _validate_payload_limits(payload: Any) -> Optional[TxVerdict]:
    """Generic payload validation (shape + size caps)."""
    if payload is None:
        return TxVerdict.reject("invalid_payload", "payload_required", {"expected": "object"})
    if not isinstance(payload, dict):
        return TxVerdict.reject("invalid_payload", "payload_must_be_object", {"type": str(type(payload))})

    max_payload_bytes = _env_int("STOREMARKET_MAX_TX_PAYLOAD_BYTES", 16 * 1024)
    max_payload_keys = _env_int("STOREMARKET_MAX_TX_PAYLOAD_KEYS", 32)
    max_string_bytes = _env_int("STOREMARKET_MAX_TX_STRING_BYTES", 8 * 1024)
    max_depth = _env_int("STOREMARKET_MAX_TX_NESTING", 4)

    if len(payload) > int(max_payload_keys):
        return TxVerdict.reject(
            "invalid_payload",
            "payload_too_many_keys",
            {"keys": len(payload), "max_keys": int(max_payload_keys)},
        )

    payload_bytes = _json_size_bytes(payload)
    if payload_bytes > int(max_payload_bytes):
        return TxVerdict.reject(
            "invalid_payload",
            "payload_exceeds_size_limit",
            {"bytes": int(payload_bytes), "max_bytes": int(max_payload_bytes)},
        )

    def walk(v: Any, depth: int) -> Optional[Tuple[str, Dict[str, Any]]]:
        if depth > int(max_depth):
            return "payload_too_deep", {"max_depth": int(max_depth)}

        if v is None or isinstance(v, (bool, int, float)):
            return None

        if isinstance(v, str):
            b = len(v.encode("utf-8", errors="ignore"))
            if b > int(max_string_bytes):
                return "string_too_large", {"bytes": int(b), "max_bytes": int(max_string_bytes)}
            return None

        if isinstance(v, list):
            for it in v:
                err = walk(it, depth + 1)
                if err:
                    return err
            return None

        if isinstance(v, dict):
            for kk, vv in v.items():
                if not isinstance(kk, str):
                    return "invalid_key_type", {"key_type": str(type(kk))}
                err = walk(vv, depth + 1)
                if err:
                    return err
            return None

        return "invalid_value_type", {"type": str(type(v))}

    err = walk(payload, 0)
    if err:
        reason, details = err
        return TxVerdict.reject("invalid_payload", reason, details)

    return None


def _validate_payload_types(env: TxEnvelope, max_file_name_len: int) -> Optional[TxVerdict]:
    p = env.payload or {}
    t = env.tx_type

    for k in _INT_KEYS.get(t, ()):
        if k not in p or p[k] is None:
            return TxVerdict.reject("invalid_payload", f"missing_{k}", {"missing": k})
        v = p[k]
        if isinstance(v, bool) or not isinstance(v, int):
            return TxVerdict.reject("invalid_payload", f"{k}_must_be_int", {k: v})

    for k in _STR_KEYS.get(t, ()):
        if k in p and p[k] is not None and not isinstance(p[k], str):
            return TxVerdict.reject("invalid_payload", f"{k}_must_be_str", {k: p[k]})

    if t == "PROVIDER_UPDATE":
        if not isinstance(p.get("active"), bool):
            return TxVerdict.reject("invalid_payload", "active_must_be_bool", {"active": p.get("active")})

    if t == "STORAGE_PURCHASE":
        for k in ("file_hash", "encryption_key_hash"):
            if not _HEX64.match(str(p.get(k) or "")):
                return TxVerdict.reject("invalid_payload", f"{k}_must_be_hex64", {k: p.get(k)})
        name = str(p.get("file_name") or "")
        if not name or len(name) > int(max_file_name_len):
            return TxVerdict.reject(
                "invalid_payload", "file_name_length", {"len": len(name), "max_len": int(max_file_name_len)}
            )

    return None


def admit_tx(tx: Any, *, max_file_name_len: int = C.MAX_FILE_NAME_LEN) -> TxVerdict:
    """Stateless admission: shape, size and payload types.

    Never touches market state. Semantic checks (ownership, balances,
    amounts > 0) belong to the apply layer and surface there with their
    own error codes.
    """
    max_tx_bytes = _env_int("STOREMARKET_MAX_TX_ENVELOPE_BYTES", 32 * 1024)
    env_size = _json_size_bytes(tx)
    if env_size > int(max_tx_bytes):
        return TxVerdict.reject(
            "invalid_payload",
            "tx_envelope_exceeds_size_limit",
            {"bytes": int(env_size), "max_bytes": int(max_tx_bytes)},
        )

    if isinstance(tx, dict) and "payload" in tx and not isinstance(tx.get("payload"), dict):
        return TxVerdict.reject("invalid_payload", "payload_must_be_object", {"type": str(type(tx.get("payload")))})

    env = TxEnvelope.from_json(tx)
    t = env.tx_type.strip().upper()

    if not t:
        return TxVerdict.reject("invalid_payload", "missing_tx_type", None)
    if t not in SUPPORTED_TX_TYPES:
        return TxVerdict.reject("tx_unimplemented", "tx_type_not_supported", {"tx_type": env.tx_type})
    if not env.signer.strip():
        return TxVerdict.reject("invalid_payload", "missing_signer", None)

    env = TxEnvelope(tx_type=t, signer=env.signer.strip(), payload=env.payload)

    verdict = _validate_payload_limits(env.payload)
    if verdict is not None:
        return verdict

    verdict = _validate_payload_types(env, max_file_name_len)
    if verdict is not None:
        return verdict

    return TxVerdict.admit()


__all__ = ["TxEnvelope", "TxVerdict", "admit_tx"]

# src/storemarket/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Dict, Tuple

from storemarket.runtime.domain_dispatch import apply_tx
from storemarket.runtime.errors import MarketError
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def apply_tx_to_copy(state: Json, env: Any) -> Tuple[Json, Json]:
    """Apply a tx to a deep copy of `state`.

    Returns (new_state, meta). `state` itself is never touched, so a raise
    from any domain leaves the caller's view exactly as it was.
    """
    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    snapshot = copy.deepcopy(state)
    meta = apply_tx(snapshot, env_norm)
    return snapshot, meta


def apply_tx_atomic(state: Json, env: Any) -> Json:
    """Apply a tx with fail-atomic semantics.

    On success:
      - state is updated as if apply_tx() ran directly.

    On MarketError:
      - state remains unchanged.

    We must never allow partial state mutation when a tx is rejected
    during apply: a purchase that fails on its second transfer must not
    leave the first one behind.
    """
    snapshot, meta = apply_tx_to_copy(state, env)

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["MarketError", "apply_tx", "apply_tx_atomic", "apply_tx_to_copy", "Json"]

# src/storemarket/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Market state is a nested JSON-like dict that is mutated deterministically by
the apply_* modules. This is the single place that:

  - validates the state is dict-like
  - ensures the keyed maps, counters and balances exist, so domain modules
    can rely on them

It never coerces a root of the wrong type; that fails closed.
"""

from collections.abc import MutableMapping
from typing import Any, Dict

Json = Dict[str, Any]

DICT_ROOTS = ("params", "providers", "listings", "contracts", "files", "disputes", "balances")

COUNTER_NAMES = ("next_listing_id", "next_contract_id")


def _ensure_dict_root(st: MutableMapping, key: str) -> None:
    cur = st.get(key)
    if cur is None:
        st[key] = {}
    elif not isinstance(cur, dict):
        raise TypeError(f"state['{key}'] must be dict, got {type(cur)}")


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains the market roots.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st or one of its roots has the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key in DICT_ROOTS:
        _ensure_dict_root(st, key)

    counters = st.get("counters")
    if counters is None:
        counters = {}
        st["counters"] = counters
    elif not isinstance(counters, dict):
        raise TypeError(f"state['counters'] must be dict, got {type(counters)}")
    for name in COUNTER_NAMES:
        counters.setdefault(name, 1)

    events = st.get("events")
    if events is None:
        st["events"] = []
    elif not isinstance(events, list):
        raise TypeError(f"state['events'] must be list, got {type(events)}")

    st.setdefault("height", 0)
    return st  # type: ignore[return-value]


__all__ = ["ensure_state", "COUNTER_NAMES", "DICT_ROOTS"]

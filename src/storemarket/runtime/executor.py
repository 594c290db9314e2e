from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from storemarket.ledger.balances import BalanceLedger
from storemarket.ledger.state import MarketView
from storemarket.runtime.domain_apply import apply_tx_to_copy
from storemarket.runtime.errors import ExecutorError, MarketError
from storemarket.runtime.ledger_store import LedgerStore, build_ledger_store
from storemarket.runtime.market_config import MarketConfig, load_market_config, validate_market_config
from storemarket.runtime.market_logging import log_event
from storemarket.runtime.state_invariants import ensure_state
from storemarket.runtime.tx_admission import admit_tx
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]

# Returns the logical block height for the next operation.
Clock = Callable[[], int]

_log = logging.getLogger("storemarket.executor")


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


class MarketExecutor:
    """Single-writer host for the market state.

    Every operation runs under one process lock: admit, stamp height,
    apply on a private copy, persist, then swap the copy into memory.
    A failure at any step leaves both memory and the store untouched.
    """

    def __init__(
        self,
        config: MarketConfig,
        *,
        store: Optional[LedgerStore] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        validate_market_config(config)
        self.config = config
        self.market_id = str(config.market_id)
        self._store: LedgerStore = store if store is not None else build_ledger_store(config)
        self._clock = clock
        self._lock = threading.RLock()

        if self._store.exists():
            self.state = ensure_state(self._store.read())
            st_market_id = str(self.state.get("market_id") or "").strip()
            if st_market_id != self.market_id:
                raise ExecutorError(
                    f"market_id mismatch: db={st_market_id!r} executor={self.market_id!r}. Refuse to start."
                )
            self._warn_on_params_drift()
        else:
            self.state = self._initial_state()
            self._store.write(self.state)
            log_event(
                _log,
                "market_genesis",
                market_id=self.market_id,
                owner_id=config.owner_id,
                custody_id=config.custody_id,
                genesis_accounts=len(config.genesis_balances),
            )

    def _initial_state(self) -> Json:
        st = ensure_state({"market_id": self.market_id, "height": 0})
        st["params"] = self.config.to_params().to_json()
        ledger = BalanceLedger(st)
        for acct, amt in sorted(self.config.genesis_balances.items()):
            ledger.credit(acct, int(amt))
        return st

    def _warn_on_params_drift(self) -> None:
        # Params are fixed at genesis; a changed config file does not rewrite them.
        want = self.config.to_params().to_json()
        have = self.state.get("params") or {}
        drift = sorted(k for k, v in want.items() if have.get(k) != v)
        if drift:
            _log.warning("config params differ from genesis params; keeping genesis values: %s", drift)

    # ----------------------------
    # Public accessors
    # ----------------------------

    @property
    def height(self) -> int:
        return _safe_int(self.state.get("height"), 0)

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> MarketView:
        with self._lock:
            return MarketView.from_ledger(self.state)

    def events(self, *, since: int = 0, limit: Optional[int] = None) -> List[Json]:
        with self._lock:
            return self._store.read_events(since=since, limit=limit)

    # ----------------------------
    # Tx submission
    # ----------------------------

    def _next_height(self) -> int:
        cur = self.height
        if self._clock is None:
            return cur + 1
        h = _safe_int(self._clock(), -1)
        if h < cur:
            raise ExecutorError(f"clock regression: clock={h} < height={cur}")
        return h

    def apply(self, env: Any) -> Json:
        """Admit and apply one envelope. Raises MarketError on rejection."""
        raw = env.to_json() if isinstance(env, TxEnvelope) else env

        verdict = admit_tx(raw, max_file_name_len=int(self.config.max_file_name_len))
        if not verdict.ok:
            log_event(_log, "tx_rejected", stage="admission", code=verdict.code, reason=verdict.reason)
            raise MarketError(verdict.code, verdict.reason, dict(verdict.details or {}))

        env_norm = TxEnvelope.from_json(raw)
        env_norm = TxEnvelope(
            tx_type=env_norm.tx_type.strip().upper(),
            signer=env_norm.signer.strip(),
            payload=env_norm.payload,
        )

        with self._lock:
            candidate = dict(self.state)
            candidate["height"] = self._next_height()

            try:
                new_state, meta = apply_tx_to_copy(candidate, env_norm)
            except MarketError as e:
                log_event(
                    _log,
                    "tx_rejected",
                    stage="apply",
                    tx_type=env_norm.tx_type,
                    signer=env_norm.signer,
                    code=e.code,
                    reason=e.reason,
                )
                raise

            # state["events"] is a per-operation outbox; drained into the store log.
            new_events = list(new_state.get("events") or [])
            new_state["events"] = []

            # Persist first; memory only moves once the store has the snapshot.
            self._store.commit(new_state, new_events)
            self.state = new_state

            for ev in new_events:
                fields = {k: v for k, v in ev.items() if k != "event"}
                log_event(_log, str(ev.get("event")), market_id=self.market_id, **fields)

            log_event(
                _log,
                "tx_applied",
                tx_type=env_norm.tx_type,
                signer=env_norm.signer,
                height=self.height,
            )
            return meta

    def submit_tx(self, env: Json) -> Json:
        if not isinstance(env, dict):
            return {"ok": False, "error": "invalid_payload", "reason": "env_not_object", "details": {}}
        try:
            meta = self.apply(env)
        except MarketError as e:
            return e.to_json()
        out: Json = {"ok": True, "height": self.height}
        out.update(meta)
        return out

    @classmethod
    def from_env(cls) -> "MarketExecutor":
        return cls(load_market_config())


__all__ = ["Clock", "ExecutorError", "MarketExecutor"]

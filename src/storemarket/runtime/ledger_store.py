from __future__ import annotations

import copy
import json
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from storemarket.runtime.market_config import MarketConfig
from storemarket.runtime.sqlite_db import SqliteDB, SqliteLedgerStore

Json = Dict[str, Any]


class LedgerStore(Protocol):
    def exists(self) -> bool: ...

    def read(self) -> Json: ...

    def write(self, st: Json) -> None: ...

    def commit(self, st: Json, events: Sequence[Json]) -> None: ...

    def read_events(self, *, since: int = 0, limit: Optional[int] = None) -> List[Json]: ...

    def update(self, mut: Callable[[Json], Any]) -> None: ...


class MemoryLedgerStore:
    """Process-local snapshot store for tests and dev.

    Snapshots round-trip through JSON on write so the same non-JSON values
    that SqliteLedgerStore would reject are rejected here too.
    """

    def __init__(self, initial: Optional[Json] = None) -> None:
        self._st: Optional[Json] = copy.deepcopy(initial) if initial is not None else None
        self._events: List[Json] = []
        self.writes = 0

    def exists(self) -> bool:
        return self._st is not None

    def read(self) -> Json:
        if self._st is None:
            raise FileNotFoundError("memory ledger_state is missing")
        return copy.deepcopy(self._st)

    def write(self, st: Json) -> None:
        self.commit(st, ())

    def commit(self, st: Json, events: Sequence[Json]) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        # Encode everything before touching either field.
        snap = json.loads(json.dumps(st, sort_keys=True))
        new_events = json.loads(json.dumps(list(events), sort_keys=True))
        self._st = snap
        self._events.extend(new_events)
        self.writes += 1

    def read_events(self, *, since: int = 0, limit: Optional[int] = None) -> List[Json]:
        out = self._events[max(0, int(since)) :]
        if limit is not None:
            out = out[: max(0, int(limit))]
        return copy.deepcopy(out)

    def update(self, mut: Callable[[Json], Any]) -> None:
        st = self.read()
        mut(st)
        self.write(st)


def build_ledger_store(cfg: MarketConfig) -> LedgerStore:
    path = str(cfg.db_path or "").strip()
    if not path:
        return MemoryLedgerStore()
    return SqliteLedgerStore(db=SqliteDB(path=path))


__all__ = ["LedgerStore", "MemoryLedgerStore", "build_ledger_store"]

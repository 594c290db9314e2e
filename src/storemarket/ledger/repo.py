"""storemarket.ledger.repo

Typed repository over the JSON-backed state.

Each keyed map is exposed as a `Table` with get / put / iterate. A `put`
always replaces the full record. Atomicity is not handled here: the
executor applies every operation against a private snapshot and swaps it
in only on success, so a table write is visible to nobody until commit.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

from storemarket.ledger.types import DisputeRecord, FileMetadata, Listing, Provider, StorageContract
from storemarket.runtime.state_invariants import ensure_state

Json = Dict[str, Any]
R = TypeVar("R")


class Table(Generic[R]):
    def __init__(
        self,
        root: Json,
        *,
        decode: Callable[[Json], R],
        encode: Callable[[R], Json],
    ) -> None:
        self._root = root
        self._decode = decode
        self._encode = encode

    def get(self, key: Any) -> Optional[R]:
        raw = self._root.get(str(key))
        if not isinstance(raw, dict):
            return None
        return self._decode(raw)

    def exists(self, key: Any) -> bool:
        return isinstance(self._root.get(str(key)), dict)

    def put(self, key: Any, rec: R) -> None:
        self._root[str(key)] = self._encode(rec)

    def items(self) -> Iterator[Tuple[str, R]]:
        for k in sorted(self._root.keys(), key=_sort_key):
            raw = self._root.get(k)
            if isinstance(raw, dict):
                yield k, self._decode(raw)

    def values(self) -> Iterator[R]:
        for _, rec in self.items():
            yield rec

    def __len__(self) -> int:
        return len(self._root)


def _sort_key(k: str) -> Tuple[int, int, str]:
    # Integer ids sort numerically, everything else lexically after them.
    return (0, int(k), "") if k.isdigit() else (1, 0, k)


def file_key(contract_id: int, file_id: int) -> str:
    return f"{int(contract_id)}:{int(file_id)}"


class MarketRepo:
    """Typed access to the provider, listing, contract, file and dispute maps."""

    def __init__(self, state: Json) -> None:
        self.state = ensure_state(state)
        self.providers: Table[Provider] = Table(
            self.state["providers"], decode=Provider.from_json, encode=Provider.to_json
        )
        self.listings: Table[Listing] = Table(
            self.state["listings"], decode=Listing.from_json, encode=Listing.to_json
        )
        self.contracts: Table[StorageContract] = Table(
            self.state["contracts"], decode=StorageContract.from_json, encode=StorageContract.to_json
        )
        self.files: Table[FileMetadata] = Table(
            self.state["files"], decode=FileMetadata.from_json, encode=FileMetadata.to_json
        )
        self.disputes: Table[DisputeRecord] = Table(
            self.state["disputes"], decode=DisputeRecord.from_json, encode=DisputeRecord.to_json
        )

    @property
    def height(self) -> int:
        return int(self.state.get("height", 0) or 0)

    def peek_counter(self, name: str) -> int:
        return int(self.state["counters"][name])

    def allocate_id(self, name: str) -> int:
        """Return the counter's current value and advance it by one."""
        counters = self.state["counters"]
        cur = int(counters[name])
        counters[name] = cur + 1
        return cur

    def emit(self, event: str, **fields: Any) -> Json:
        rec: Json = {"event": event, "height": self.height}
        rec.update(fields)
        self.state["events"].append(rec)
        return rec


__all__ = ["MarketRepo", "Table", "file_key"]

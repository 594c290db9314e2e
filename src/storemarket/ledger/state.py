from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from storemarket.ledger.balances import BalanceLedger
from storemarket.ledger.repo import MarketRepo, file_key
from storemarket.ledger.types import DisputeRecord, FileMetadata, Listing, Provider, StorageContract

Json = Dict[str, Any]


@dataclass(frozen=True)
class MarketView:
    """
    Immutable read-only market view.

    Built from a deep copy of the state so callers can hold it across
    later writes without seeing them.
    """

    state: Json = field(default_factory=dict)

    @classmethod
    def from_ledger(cls, state: Json) -> "MarketView":
        st = copy.deepcopy(state)
        # Normalizes missing roots on the private copy only.
        MarketRepo(st)
        return cls(state=st)

    @property
    def _repo(self) -> MarketRepo:
        return MarketRepo(self.state)

    @property
    def height(self) -> int:
        return int(self.state.get("height", 0) or 0)

    @property
    def market_id(self) -> str:
        return str(self.state.get("market_id") or "")

    @property
    def params(self) -> Json:
        p = self.state.get("params")
        return copy.deepcopy(p) if isinstance(p, dict) else {}

    # providers

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._repo.providers.get(provider_id)

    def is_registered(self, provider_id: str) -> bool:
        rec = self.get_provider(provider_id)
        return rec is not None and rec.active

    # listings

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self._repo.listings.get(listing_id)

    def available_listings(self) -> List[Listing]:
        return [x for x in self._repo.listings.values() if x.available]

    def listings_by_provider(self, provider_id: str) -> List[Listing]:
        return [x for x in self._repo.listings.values() if x.provider == provider_id]

    # contracts

    def get_contract(self, contract_id: int) -> Optional[StorageContract]:
        return self._repo.contracts.get(contract_id)

    def contracts_for_user(self, user_id: str) -> List[StorageContract]:
        return [c for c in self._repo.contracts.values() if c.user == user_id]

    def contracts_for_provider(self, provider_id: str) -> List[StorageContract]:
        return [c for c in self._repo.contracts.values() if c.provider == provider_id]

    def get_file_metadata(self, contract_id: int, file_id: int = 1) -> Optional[FileMetadata]:
        return self._repo.files.get(file_key(contract_id, file_id))

    def get_dispute(self, contract_id: int) -> Optional[DisputeRecord]:
        return self._repo.disputes.get(contract_id)

    # value

    def balance_of(self, account_id: str) -> int:
        return BalanceLedger(self.state).balance_of(account_id)

    def custody_balance(self) -> int:
        custody = str(self.params.get("custody_id") or "")
        return self.balance_of(custody) if custody else 0


__all__ = ["MarketView"]

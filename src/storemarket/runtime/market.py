"""storemarket.runtime.market

Method-style entry points over MarketExecutor.

Each write method builds the matching tx envelope for `caller` and returns
the operation's plain result (True, or the newly allocated id). Failures
raise MarketError with the same codes the tx layer uses.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from storemarket.ledger.types import DisputeRecord, FileMetadata, Listing, Provider, StorageContract
from storemarket.runtime.executor import MarketExecutor
from storemarket.runtime.tx_admission_types import TxEnvelope

Json = Dict[str, Any]


def _hex(v: Any) -> str:
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    return str(v)


class StorageMarket:
    def __init__(self, executor: MarketExecutor) -> None:
        self.executor = executor

    def _submit(self, tx_type: str, caller: str, payload: Json) -> Json:
        return self.executor.apply(TxEnvelope(tx_type=tx_type, signer=caller, payload=payload))

    # writes

    def register_as_provider(self, *, caller: str, available_space: int, price_per_mb: int) -> bool:
        meta = self._submit(
            "PROVIDER_REGISTER",
            caller,
            {"available_space": available_space, "price_per_mb": price_per_mb},
        )
        return bool(meta["result"])

    def update_provider_details(
        self, *, caller: str, available_space: int, price_per_mb: int, active: bool
    ) -> bool:
        meta = self._submit(
            "PROVIDER_UPDATE",
            caller,
            {"available_space": available_space, "price_per_mb": price_per_mb, "active": active},
        )
        return bool(meta["result"])

    def create_storage_listing(
        self, *, caller: str, space_mb: int, price_per_block: int, min_blocks: int, max_blocks: int
    ) -> int:
        meta = self._submit(
            "LISTING_CREATE",
            caller,
            {
                "space_mb": space_mb,
                "price_per_block": price_per_block,
                "min_blocks": min_blocks,
                "max_blocks": max_blocks,
            },
        )
        return int(meta["result"])

    def purchase_storage(
        self,
        *,
        caller: str,
        listing_id: int,
        blocks: int,
        file_hash: Any,
        file_size_mb: int,
        file_name: str,
        encryption_key_hash: Any,
    ) -> int:
        """Buy a listing. Hashes may be 32 raw bytes or 64 hex chars."""
        meta = self._submit(
            "STORAGE_PURCHASE",
            caller,
            {
                "listing_id": listing_id,
                "blocks": blocks,
                "file_hash": _hex(file_hash),
                "file_size_mb": file_size_mb,
                "file_name": file_name,
                "encryption_key_hash": _hex(encryption_key_hash),
            },
        )
        return int(meta["result"])

    def resolve_storage_dispute(
        self,
        *,
        caller: str,
        contract_id: int,
        dispute_type: str,
        evidence: str = "",
        resolution_request: str = "",
    ) -> bool:
        meta = self._submit(
            "DISPUTE_RESOLVE",
            caller,
            {
                "contract_id": contract_id,
                "dispute_type": dispute_type,
                "evidence": evidence,
                "resolution_request": resolution_request,
            },
        )
        return bool(meta["result"])

    def sweep_custody(self, *, caller: str, amount: int, to: str = "") -> bool:
        meta = self._submit("CUSTODY_SWEEP", caller, {"amount": amount, "to": to})
        return bool(meta["result"])

    # reads

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self.executor.view().get_provider(provider_id)

    def is_registered(self, provider_id: str) -> bool:
        return self.executor.view().is_registered(provider_id)

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self.executor.view().get_listing(listing_id)

    def available_listings(self) -> List[Listing]:
        return self.executor.view().available_listings()

    def get_contract(self, contract_id: int) -> Optional[StorageContract]:
        return self.executor.view().get_contract(contract_id)

    def get_file_metadata(self, contract_id: int, file_id: int = 1) -> Optional[FileMetadata]:
        return self.executor.view().get_file_metadata(contract_id, file_id)

    def get_dispute(self, contract_id: int) -> Optional[DisputeRecord]:
        return self.executor.view().get_dispute(contract_id)

    def balance_of(self, account_id: str) -> int:
        return self.executor.view().balance_of(account_id)

    def custody_balance(self) -> int:
        return self.executor.view().custody_balance()


__all__ = ["StorageMarket"]

from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; the tx admission layer still
re-checks every payload before apply.
"""

from pydantic import BaseModel, Field, StrictBool, StrictInt


class ProviderRegisterRequest(BaseModel):
    available_space: StrictInt = Field(..., description="Capacity offered, in MB")
    price_per_mb: StrictInt = Field(..., description="Advertised price per MB")


class ProviderUpdateRequest(BaseModel):
    available_space: StrictInt
    price_per_mb: StrictInt
    active: StrictBool


class ListingCreateRequest(BaseModel):
    space_mb: StrictInt
    price_per_block: StrictInt
    min_blocks: StrictInt
    max_blocks: StrictInt


class StoragePurchaseRequest(BaseModel):
    listing_id: StrictInt
    blocks: StrictInt = Field(..., description="Rental duration in blocks")
    file_hash: str = Field(..., description="32-byte content hash, hex")
    file_size_mb: StrictInt
    file_name: str
    encryption_key_hash: str = Field(..., description="32-byte key commitment, hex")


class DisputeResolveRequest(BaseModel):
    dispute_type: str = ""
    evidence: str = ""
    resolution_request: str = ""


class CustodySweepRequest(BaseModel):
    amount: StrictInt
    to: str = Field(default="", description="Recipient; defaults to the owner")

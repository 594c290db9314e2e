# src/storemarket/runtime/apply/__init__.py
"""Domain-specific apply modules.

Each module implements deterministic market state transitions for a subset
of tx types and exposes `apply_<domain>(state, env) -> Optional[Json]`
(None means "not claimed"). Routing lives in domain_dispatch.

NOTE: Keep this package import-safe (no imports of domain_dispatch here).
"""

from __future__ import annotations

__all__ = [
    "provider",
    "listing",
    "escrow",
    "dispute",
]

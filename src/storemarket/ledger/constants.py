# src/storemarket/ledger/constants.py
from __future__ import annotations

"""Market constants (defaults for genesis params).

Amounts are integer minor currency units; space is whole megabytes; time is
logical blocks supplied by the host clock.
"""

# Minimum rental period: 30 days * 24 hours * 6 blocks/hour = 4,320
MIN_RENTAL_BLOCKS: int = 4_320

# Platform fee as a fixed-point fraction: 5 / 1000 = 0.5%
FEE_RATE: int = 5
FEE_DENOMINATOR: int = 1_000

# Reputation assigned to a newly registered provider.
BASELINE_REPUTATION: int = 80
REPUTATION_MIN: int = 0
REPUTATION_MAX: int = 100

# Owner arbitration in the user's favor refunds this share of total_payment.
ARBITRATION_REFUND_PCT: int = 75

# A user filing with evidence longer than this many bytes is auto-resolved.
EVIDENCE_AUTORESOLVE_BYTES: int = 128
AUTO_REFUND_PCT: int = 50

USER_FAVORED: str = "user-favored"

MAX_FILE_NAME_LEN: int = 255

# Only file id 1 is written at purchase time.
PURCHASE_FILE_ID: int = 1

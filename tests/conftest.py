from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "storemarket" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from storemarket.runtime.market_config import MarketConfig  # noqa: E402

OWNER = "owner"
CUSTODY = "custody"


def _cfg(**kw) -> MarketConfig:
    base = dict(
        market_id="storemarket-test",
        mode="dev",
        db_path="",
        owner_id=OWNER,
        custody_id=CUSTODY,
        genesis_balances={"alice": 1_000_000, "bob": 50_000},
    )
    base.update(kw)
    return MarketConfig(**base)


@pytest.fixture
def market_cfg() -> MarketConfig:
    return _cfg()


@pytest.fixture
def make_cfg():
    return _cfg

# src/storemarket/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from storemarket.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so STOREMARKET_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from storemarket.api.app import create_app
    from storemarket.runtime.market_config import load_market_config

    cfg = load_market_config()
    host = os.getenv("STOREMARKET_API_HOST", cfg.api_host)
    port = int(os.getenv("STOREMARKET_API_PORT", str(cfg.api_port)))

    uvicorn.run(create_app(), host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()

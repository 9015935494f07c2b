"""
wellspring.api.__main__ — Entry point for ``python -m wellspring.api``
=======================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (infrastructure settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed settings and
   the badge catalog.
4. Serve the FastAPI app with uvicorn (blocking).
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("wellspring")


def main() -> None:
    """Bootstrap and run the Wellspring API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    from wellspring.config import load_config
    from wellspring.database.engine import create_db_engine, init_db

    # 2. Infrastructure configuration.
    cfg = load_config()
    logger.info("Config loaded — Platform: %s", cfg.platform_name)

    # 3. Database + seeds (idempotent).
    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    # 4. Serve.
    uvicorn.run("wellspring.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()

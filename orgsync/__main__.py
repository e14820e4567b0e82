"""
orgsync.__main__ — Entry point for ``python -m orgsync``
=========================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (soft settings, dashboard port).
3. Serve the FastAPI app with uvicorn; the app's lifespan creates the
   schema, seeds default settings and prepares the storage buckets.
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from orgsync.config import load_config

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("orgsync")


def main() -> None:
    """Bootstrap and run the OrgSync API."""
    load_dotenv()

    if not os.getenv("DATABASE_URL"):
        logger.critical(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at your PostgreSQL database."
        )
        sys.exit(1)

    cfg = load_config()
    logger.info("Starting %s for %s on port %d", cfg.app_name, cfg.university_name, cfg.dashboard_port)

    uvicorn.run(
        "orgsync.api.main:app",
        host=os.getenv("ORGSYNC_HOST", "0.0.0.0"),
        port=cfg.dashboard_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()

"""
FastAPI service for the point ledger.

Usage:
    uvicorn pointledger.main:app --reload --host 0.0.0.0 --port 8001
"""

import logging
import os

from dotenv import load_dotenv

# Load environment variables before importing anything else
load_dotenv()

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from pointledger.api import create_app

app = create_app()

logger.info("Point ledger initialized")


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8001"))
    reload = os.getenv("DEBUG", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        "pointledger.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
    )

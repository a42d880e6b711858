"""
Screenshot Service - FastAPI Application

Run with:
    uvicorn server:app --host 0.0.0.0 --port 8000 --proxy-headers
"""

import logging
import os

from screenshot.app import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()

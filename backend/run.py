#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses DATABASE_URL from backend/.env. For local development only.
"""
import logging
import os
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "development")

import uvicorn

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting DanceHub API on http://localhost:%s (docs at /docs)", port)
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")

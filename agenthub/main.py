"""
main.py — Uvicorn entry point.

Run with:
  uvicorn agenthub.main:app --reload --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from .api.app import create_app  # noqa: E402
from .config import load_settings  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Raises ConfigurationError (and the process exits) before serving anything.
settings = load_settings()
app = create_app(settings)


def run() -> None:
    uvicorn.run(
        "agenthub.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )


if __name__ == "__main__":
    run()

#!/usr/bin/env python3

import logging
import sys
from pathlib import Path

import uvicorn

sys.path.insert(0, str(Path(__file__).resolve().parent / "backend"))

from repochat.core.config import settings  # noqa: E402

if __name__ == '__main__':
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("repochat.main:app", host='0.0.0.0', port=8000, log_config=None)

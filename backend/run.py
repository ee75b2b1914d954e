#!/usr/bin/env python3
"""
Tiny launcher for the backend. Loads .env, honors HOST/PORT/DEBUG,
and starts uvicorn pointing at labsight.main:app.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
import uvicorn


def main() -> None:
    # Ensure CWD is the backend dir so .env and imports resolve
    backend_dir = Path(__file__).resolve().parent
    os.chdir(backend_dir)

    load_dotenv(backend_dir / ".env", override=False)

    # Settings read the environment at import time, so import after load_dotenv
    from labsight.config import settings

    uvicorn.run(
        "labsight.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    # Make Ctrl+C behave
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(130)

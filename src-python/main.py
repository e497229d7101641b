"""Main entry point for scanshield — starts the FastAPI server."""

from __future__ import annotations

import logging
import socket

import uvicorn

from core.config import config
from core.structured_logging import setup_logging


def find_free_port() -> int:
    """Find an available TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def main():
    setup_logging(config.log_format, config.log_level)

    port = config.port if config.port != 0 else find_free_port()
    config.port = port

    log = logging.getLogger("scanshield")
    log.info(f"Starting on {config.host}:{port}")

    uvicorn.run(
        "api.server:app",
        host=config.host,
        port=port,
        log_level=config.log_level.lower(),
        log_config=None,          # keep our handlers
        reload=False,
    )


if __name__ == "__main__":
    main()

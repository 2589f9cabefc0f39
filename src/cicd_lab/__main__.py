"""uvicorn エントリポイント"""

from __future__ import annotations

import sys

import structlog
import uvicorn

from .app import create_app
from .config import load_settings
from .exceptions import ConfigError
from .logger import new_logger


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as e:
        new_logger().error("invalid configuration", code=e.code, error=str(e))
        sys.exit(2)

    new_logger(level=settings.log_level, format=settings.log_format)
    app = create_app(settings)
    structlog.stdlib.get_logger(__name__).info(
        "starting server", host=settings.host, port=settings.port
    )
    # uvicorn's loggers propagate to the root handler, which renders them like ours.
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
    )


if __name__ == "__main__":
    main()

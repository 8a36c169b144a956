"""CLI entrypoint."""

from __future__ import annotations

import logging

import uvicorn

from .asgi import create_app
from .settings import Settings


def configure_logging(level: str) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(stream_handler)

    # Request lines from httpx would repeat every Dropbox call.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.storybook_host,
        port=settings.storybook_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

"""Run the relay with uvicorn: ``python -m syncrelay``."""

from __future__ import annotations

import logging

import uvicorn

from syncrelay.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run("syncrelay.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

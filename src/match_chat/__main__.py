"""Run the gateway with ``python -m match_chat`` (or the ``match-chat`` script)."""
from __future__ import annotations

import logging

import uvicorn

from match_chat.api.middleware.request_context import configure_logging
from match_chat.config import settings


def main() -> None:
    configure_logging(logging.getLevelName(settings.LOG_LEVEL.upper()))
    uvicorn.run(
        "match_chat.app:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()

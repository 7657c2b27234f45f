"""
Process-wide logging setup.
"""

from __future__ import annotations

import logging

from . import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level or settings.log_level())

    # Reconfiguring (tests, reload) must not stack handlers.
    for handler in root.handlers:
        if getattr(handler, "_catalog_handler", False):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._catalog_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

from __future__ import annotations

import logging

from acclms.core.config import get_settings


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    # Install one root handler; repeated calls (app factory, scripts, tests) only adjust the level.
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    if not any(getattr(handler, "_acclms", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._acclms = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level)

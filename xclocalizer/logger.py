"""Logging helpers shared by the xclocalizer modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "xclocalizer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MODES = ("off", "info", "debug")


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package root logger."""

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(log_mode: str = "info", log_file: Optional[Path] = None) -> logging.Logger:
    """Install console (and optional file) handlers on the package root logger.

    ``log_mode`` is one of ``off``, ``info`` or ``debug``. Calling this again
    replaces the handlers installed by a previous call.
    """

    mode = (log_mode or "info").strip().lower()
    if mode not in LOG_MODES:
        mode = "info"

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    if mode == "off":
        # Level above CRITICAL disables everything.
        root.setLevel(logging.CRITICAL + 1)
        return root

    level = logging.DEBUG if mode == "debug" else logging.INFO
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    c_handler = logging.StreamHandler()
    c_handler.setLevel(level)
    c_handler.setFormatter(formatter)
    root.addHandler(c_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        f_handler = logging.FileHandler(log_file, encoding="utf-8")
        f_handler.setLevel(logging.DEBUG)
        f_handler.setFormatter(formatter)
        root.addHandler(f_handler)

    return root

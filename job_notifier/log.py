"""Centralized logging configuration — stdlib only."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

_LOG_DIR = Path(os.environ.get("NOTIFIER_LOG_DIR") or Path(__file__).resolve().parent.parent / "logs")
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    return logging.getLogger(name)


def _configure() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(console)

    if os.environ.get("NOTIFIER_LOG_FILE", "1").lower() in ("0", "false", "no"):
        return

    try:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = _LOG_DIR / f"notifier_{datetime.now().strftime('%Y-%m-%d')}.log"
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
        root.addHandler(fh)
    except OSError as exc:
        root.warning("File logging disabled (%s): %s", _LOG_DIR, exc)

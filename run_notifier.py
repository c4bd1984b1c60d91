#!/usr/bin/env python3
"""Entry point to run the job notifier."""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from job_notifier.config import CONFIG_PATH
from job_notifier.log import get_logger

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if the config file is missing."""
    if not CONFIG_PATH.exists():
        print()
        print("  No config found. Copy the example first:")
        print("    cp config/notifier.example.yaml config/notifier.yaml")
        print()
        return True
    return False


if __name__ == "__main__":
    if "--config" not in sys.argv and _check_setup():
        sys.exit(1)

    from job_notifier.runner import main

    sys.exit(main())

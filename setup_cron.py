#!/usr/bin/env python3
"""
Install a cron job that runs one notifier pass every CRON_INTERVAL_MINUTES (from .env).
flock keeps a slow pass from overlapping the next one.
Run once: python setup_cron.py
"""
from __future__ import annotations

import os
import subprocess
from pathlib import Path

from dotenv import load_dotenv

# Project root
ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT / ".env")
interval = int(os.environ.get("CRON_INTERVAL_MINUTES", "30"))
venv_python = ROOT / ".venv" / "bin" / "python"
run_script = ROOT / "run_notifier.py"
lock_file = "/tmp/job-notifier.lock"
entry = f"*/{interval} * * * * cd {ROOT} && flock -n {lock_file} {venv_python} {run_script} --once"


def main():
    if not venv_python.exists():
        print("Error: .venv not found. Run: python -m venv .venv && pip install -e .")
        return 1
    try:
        out = subprocess.run(
            ["crontab", "-l"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        existing = (out.stdout or "").strip() if out.returncode == 0 else ""
        if entry in existing:
            print("Cron entry already present. No change.")
            return 0
        new_crontab = (existing + "\n" + entry).strip() if existing else entry
        proc = subprocess.run(
            ["crontab", "-"],
            input=new_crontab,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if proc.returncode != 0:
            _write_crontab_file(new_crontab)
            print("Could not install crontab automatically. Run manually:")
            print(f"  crontab {ROOT / 'crontab.txt'}")
            return 1
        print(f"Cron installed: every {interval} minutes")
        print(f"  Entry: {entry}")
        return 0
    except subprocess.TimeoutExpired:
        _write_crontab_file(entry)
        print("Crontab timed out. To install manually, run:")
        print(f"  crontab {ROOT / 'crontab.txt'}")
        return 1
    except FileNotFoundError:
        print("crontab not found. Use `python run_notifier.py` (built-in scheduler) instead.")
        _write_crontab_file(entry)
        return 1


def _write_crontab_file(content: str) -> None:
    path = ROOT / "crontab.txt"
    path.write_text(content + "\n", encoding="utf-8")
    print(f"Wrote {path}")


if __name__ == "__main__":
    raise SystemExit(main())

"""Load notifier configuration (YAML) and credentials (env)."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

from job_notifier.log import get_logger
from job_notifier.relevance import RelevancePolicy
from job_notifier.sources import SOURCE_CLASSES, RetryPolicy

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
CONFIG_PATH: Path = CONFIG_DIR / "notifier.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
SEEN_PATH: Path = DATA_DIR / "seen_jobs.json"

NOTIFIERS = ("telegram", "email", "log")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    sources: frozenset[str]
    policy: RelevancePolicy
    max_dispatches_per_run: int = 5
    max_dispatches_per_source: int | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    notifier: str = "telegram"
    seen_path: Path = SEEN_PATH
    persist_each_dispatch: bool = True
    interval_minutes: float = 30.0
    initial_delay_seconds: float = 60.0
    telegram_token: str = ""
    telegram_chat_id: str = ""
    smtp: dict[str, str] = field(default_factory=dict)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _number(data: dict, key: str, default: Any, *, cast: Callable = float, minimum: float | None = None) -> Any:
    raw = data.get(key, default)
    if raw is None:
        if default is None:
            return None
        raise ConfigError(f"{key} is required")
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _flag(data: dict, key: str, default: bool) -> bool:
    raw = data.get(key, default)
    if not isinstance(raw, bool):
        raise ConfigError(f"{key} must be true or false, got {raw!r}")
    return raw


def _string_list(data: dict, key: str) -> list[str]:
    raw = data.get(key) or []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ConfigError(f"keywords.{key} must be a list")
    return [str(x) for x in raw]


def build_policy(data: dict) -> RelevancePolicy:
    kw = data.get("keywords") or {}
    if not isinstance(kw, dict):
        raise ConfigError("keywords must be a mapping")
    preferred = kw.get("preferred") or {}
    if isinstance(preferred, list):
        preferred = {p: 1.0 for p in preferred}
    if not isinstance(preferred, dict):
        raise ConfigError("keywords.preferred must map pattern -> weight")

    max_age = _number(data, "max_age_minutes", 90, minimum=0)
    try:
        return RelevancePolicy.build(
            max_age=timedelta(minutes=max_age),
            required=_string_list(kw, "required"),
            excluded=_string_list(kw, "excluded"),
            preferred={str(k): float(v) for k, v in preferred.items()},
            threshold=_number(kw, "threshold", 1.0),
            dual_role=_string_list(kw, "dual_role"),
            counter_signals=_string_list(kw, "counter_signals"),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid keyword policy: {exc}") from exc


def build_settings(data: dict | None, env_getter: Callable[[str], str] = get_env) -> Settings:
    """Validate a raw config mapping into Settings."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")

    names = data.get("sources", ["remoteok", "remotive", "wwr"])
    if isinstance(names, str):
        names = [names]
    unknown = sorted(set(names) - set(SOURCE_CLASSES))
    if unknown:
        raise ConfigError(f"unknown source(s): {', '.join(unknown)}")

    retry_cfg = data.get("retry") or {}
    retry = RetryPolicy(
        attempts=_number(retry_cfg, "attempts", 3, cast=int, minimum=1),
        base_delay=_number(retry_cfg, "base_delay", 1.0, minimum=0),
        timeout=_number(retry_cfg, "timeout", 15.0, minimum=0.1),
        max_delay=_number(retry_cfg, "max_delay", None, minimum=0),
    )

    notifier = str(data.get("notifier", "telegram")).lower()
    if notifier not in NOTIFIERS:
        raise ConfigError(f"notifier must be one of {', '.join(NOTIFIERS)}")

    schedule = data.get("schedule") or {}
    seen_path = Path(data.get("seen_path") or SEEN_PATH)
    if not seen_path.is_absolute():
        seen_path = ROOT_DIR / seen_path

    return Settings(
        sources=frozenset(names),
        policy=build_policy(data),
        max_dispatches_per_run=_number(data, "max_dispatches_per_run", 5, cast=int, minimum=1),
        max_dispatches_per_source=_number(data, "max_dispatches_per_source", None, cast=int, minimum=1),
        retry=retry,
        notifier=notifier,
        seen_path=seen_path,
        persist_each_dispatch=_flag(data, "persist_each_dispatch", True),
        interval_minutes=_number(schedule, "interval_minutes", 30, minimum=1),
        initial_delay_seconds=_number(schedule, "initial_delay_seconds", 60, minimum=0),
        telegram_token=env_getter("TELEGRAM_BOT_TOKEN"),
        telegram_chat_id=env_getter("TELEGRAM_CHAT_ID"),
        smtp={
            "host": env_getter("SMTP_HOST"),
            "port": env_getter("SMTP_PORT") or "587",
            "user": env_getter("SMTP_USER"),
            "password": env_getter("SMTP_PASSWORD"),
            "from": env_getter("FROM_EMAIL"),
            "to": env_getter("TO_EMAIL"),
        },
    )


def load_settings(path: Path | None = None, env_getter: Callable[[str], str] = get_env) -> Settings:
    path = Path(path or env_getter("NOTIFIER_CONFIG") or CONFIG_PATH)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file missing: {path}") from None
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in configuration file: {path}") from exc
    settings = build_settings(data, env_getter)
    log.info("Loaded config from %s (sources: %s)", path.name, ", ".join(sorted(settings.sources)))
    return settings

"""
Tests for configuration loading and validation.
"""
from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from job_notifier.config import ROOT_DIR, ConfigError, build_settings, load_settings
from job_notifier.notifiers import EmailNotifier, LogNotifier, TelegramNotifier, build_notifier

ENV = {"TELEGRAM_BOT_TOKEN": "123:abc", "TELEGRAM_CHAT_ID": "42"}


def env(extra=None):
    values = dict(ENV, **(extra or {}))
    return lambda key: values.get(key, "")


def test_defaults():
    settings = build_settings({}, env())
    assert settings.sources == {"remoteok", "remotive", "wwr"}
    assert settings.max_dispatches_per_run == 5
    assert settings.max_dispatches_per_source is None
    assert settings.policy.max_age == timedelta(minutes=90)
    assert settings.retry.attempts == 3
    assert settings.notifier == "telegram"
    assert settings.interval_minutes == 30
    assert settings.seen_path == ROOT_DIR / "data" / "seen_jobs.json"


def test_full_config():
    settings = build_settings(
        {
            "sources": ["remotive"],
            "max_age_minutes": 45,
            "max_dispatches_per_run": 2,
            "max_dispatches_per_source": 1,
            "retry": {"attempts": 4, "base_delay": 0.25, "timeout": 5, "max_delay": 2},
            "keywords": {
                "required": ["angular"],
                "excluded": ["react"],
                "preferred": {"remote": 2},
                "threshold": 2,
                "dual_role": ["full-stack"],
            },
            "notifier": "log",
            "seen_path": "/tmp/seen.json",
        },
        env(),
    )
    assert settings.sources == {"remotive"}
    assert settings.policy.max_age == timedelta(minutes=45)
    assert [p.source for p in settings.policy.required] == ["angular"]
    assert settings.policy.preferred[0][1] == 2.0
    assert settings.retry.delay_cap == 2
    assert settings.max_dispatches_per_source == 1
    assert settings.seen_path == Path("/tmp/seen.json")


@pytest.mark.parametrize(
    "data",
    [
        {"sources": ["monster"]},
        {"max_dispatches_per_run": 0},
        {"retry": {"attempts": 0}},
        {"retry": {"base_delay": -1}},
        {"notifier": "pigeon"},
        {"keywords": {"excluded": ["re:(broken"]}},
        {"keywords": {"preferred": {"remote": "lots"}}},
        {"max_age_minutes": "soon"},
        {"max_dispatches_per_run": None},
        {"retry": {"attempts": None}},
        {"retry": {"timeout": None}},
        {"schedule": {"interval_minutes": None}},
        {"persist_each_dispatch": "false"},
        {"persist_each_dispatch": 0},
    ],
)
def test_invalid_config_raises(data):
    with pytest.raises(ConfigError):
        build_settings(data, env())


def test_optional_numbers_accept_null_and_flags_accept_booleans():
    settings = build_settings(
        {"max_dispatches_per_source": None, "retry": {"max_delay": None}, "persist_each_dispatch": False},
        env(),
    )
    assert settings.max_dispatches_per_source is None
    assert settings.persist_each_dispatch is False


def test_load_settings_from_yaml(tmp_path):
    path = tmp_path / "notifier.yaml"
    path.write_text(yaml.safe_dump({"sources": ["wwr"], "notifier": "log"}), encoding="utf-8")
    settings = load_settings(path, env())
    assert settings.sources == {"wwr"}


def test_shipped_example_config_is_valid():
    settings = load_settings(ROOT_DIR / "config" / "notifier.example.yaml", env())
    assert settings.policy.dual_role
    assert settings.max_dispatches_per_run == 5


def test_missing_and_broken_files(tmp_path):
    with pytest.raises(ConfigError):
        load_settings(tmp_path / "absent.yaml", env())
    broken = tmp_path / "broken.yaml"
    broken.write_text("sources: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_settings(broken, env())


def test_build_notifier_choices():
    assert isinstance(build_notifier(build_settings({"notifier": "log"}, env())), LogNotifier)
    assert isinstance(build_notifier(build_settings({}, env())), TelegramNotifier)

    email_env = env({
        "SMTP_HOST": "smtp.example.com", "SMTP_USER": "me", "SMTP_PASSWORD": "pw",
        "TO_EMAIL": "me@example.com", "SMTP_PORT": "2525",
    })
    notifier = build_notifier(build_settings({"notifier": "email"}, email_env))
    assert isinstance(notifier, EmailNotifier)
    assert notifier.port == 2525


def test_missing_credentials_are_config_errors():
    no_env = lambda key: ""  # noqa: E731
    with pytest.raises(ConfigError):
        build_notifier(build_settings({}, no_env))
    with pytest.raises(ConfigError):
        build_notifier(build_settings({"notifier": "email"}, no_env))

"""
Unit tests for configuration defaults, file overrides and environment overrides.
"""

import json
from datetime import timedelta

from config import Config


def test_defaults_without_file_or_environment(tmp_path):
    config = Config(config_file=tmp_path / "missing.json", environ={})

    assert config.get("poller.interval_seconds") == 30
    assert config.get("poller.max_concurrent_refreshes") == 8
    assert config.get("eligibility.trailing_window_days") == 7
    assert config.get("challenge.default_timezone") == "US/Eastern"
    assert config.get("summary_api.base_url") == "https://waka.hackclub.com/api"
    assert config.get("does.not.exist", "fallback") == "fallback"


def test_config_file_merges_into_sections(tmp_path):
    config_file = tmp_path / "reconciler.json"
    config_file.write_text(json.dumps({"poller": {"interval_seconds": 5}}))

    config = Config(config_file=config_file, environ={})

    assert config.get("poller.interval_seconds") == 5
    # Untouched keys in the same section keep their defaults
    assert config.get("poller.max_concurrent_refreshes") == 8


def test_environment_overrides_win_over_file(tmp_path):
    config_file = tmp_path / "reconciler.json"
    config_file.write_text(json.dumps({"summary_api": {"base_url": "http://from-file/api"}}))

    config = Config(config_file=config_file, environ={
        "SUMMARY_API_BASE_URL": "http://from-env/api",
        "CHALLENGE_TRAILING_WINDOW_DAYS": "3",
        "CHALLENGE_MAX_CONCURRENT_REFRESHES": ""
    })

    assert config.get("summary_api.base_url") == "http://from-env/api"
    assert config.get("eligibility.trailing_window_days") == 3.0
    assert config.get("poller.max_concurrent_refreshes") == 8


def test_invalid_environment_value_is_ignored(tmp_path):
    config = Config(config_file=tmp_path / "missing.json", environ={
        "CHALLENGE_POLL_INTERVAL_SECONDS": "soon"
    })

    assert config.get("poller.interval_seconds") == 30


def test_broken_config_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "reconciler.json"
    config_file.write_text("{not json")

    config = Config(config_file=config_file, environ={})

    assert config.get("challenge.default_minimum_time_minutes") == 15


def test_trailing_window_accessor_returns_timedelta():
    from config import get_trailing_window

    assert isinstance(get_trailing_window(), timedelta)

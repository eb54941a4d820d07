# config.py
import copy
import json
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

# Pick up a local .env before anything reads the environment
load_dotenv()

CONFIG_FILE = Path("configs/reconciler.json")

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///challenges.db"

# Environment variables that override a config path
ENV_OVERRIDES = {
    "CHALLENGE_POLL_INTERVAL_SECONDS": ("poller.interval_seconds", float),
    "CHALLENGE_MAX_CONCURRENT_REFRESHES": ("poller.max_concurrent_refreshes", int),
    "CHALLENGE_TRAILING_WINDOW_DAYS": ("eligibility.trailing_window_days", float),
    "CHALLENGE_DEFAULT_MINIMUM_TIME_MINUTES": ("challenge.default_minimum_time_minutes", int),
    "CHALLENGE_DEFAULT_TIMEZONE": ("challenge.default_timezone", str),
    "SUMMARY_API_BASE_URL": ("summary_api.base_url", str),
    "SUMMARY_API_TIMEOUT_SECONDS": ("summary_api.timeout_seconds", float),
}


class Config:
    def __init__(self, config_file=CONFIG_FILE, environ=None):
        self.default_config = {
            "poller": {
                "interval_seconds": 30,
                "max_concurrent_refreshes": 8
            },
            "eligibility": {
                "trailing_window_days": 7     # Keep refreshing a week after the end
            },
            "challenge": {
                "default_minimum_time_minutes": 15,
                "default_timezone": "US/Eastern",
                "join_code_length": 4
            },
            "summary_api": {
                "base_url": "https://waka.hackclub.com/api",
                "timeout_seconds": 30
            }
        }

        self.config_file = Path(config_file)
        self.environ = os.environ if environ is None else environ
        self.settings = copy.deepcopy(self.default_config)
        self.load_config()
        self.apply_env_overrides()

    def load_config(self):
        if not self.config_file.exists():
            return

        try:
            with open(self.config_file, "r") as f:
                overrides = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error loading config file {self.config_file}: {e}")
            return

        for section, values in overrides.items():
            if isinstance(values, dict):
                self.settings.setdefault(section, {}).update(values)
            else:
                self.settings[section] = values

    def apply_env_overrides(self):
        for env_name, (path, cast) in ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                self.set(path, cast(raw))
            except ValueError:
                print(f"Ignoring invalid value for {env_name}: {raw!r}")

    def get(self, path, default=None):
        current = self.settings
        for part in path.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def set(self, path, value):
        parts = path.split('.')
        current = self.settings
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value


# Initialize the config
bot_config = Config()


def get_database_url():
    """Return the URL of the challenge store"""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_heartbeat_database_url():
    """Return the URL of the heartbeat time-series database"""
    return os.getenv("HEARTBEAT_DATABASE_URL")


def get_poll_interval_seconds():
    return float(bot_config.get("poller.interval_seconds", 30))


def get_max_concurrent_refreshes():
    return int(bot_config.get("poller.max_concurrent_refreshes", 8))


def get_trailing_window():
    """How long after a challenge ends its participants keep getting refreshed"""
    return timedelta(days=float(bot_config.get("eligibility.trailing_window_days", 7)))


def get_default_minimum_time_minutes():
    return int(bot_config.get("challenge.default_minimum_time_minutes", 15))


def get_default_timezone():
    return bot_config.get("challenge.default_timezone", "US/Eastern")


def get_join_code_length():
    return int(bot_config.get("challenge.join_code_length", 4))


def get_summary_api_base_url():
    return bot_config.get("summary_api.base_url").rstrip("/")


def get_summary_api_timeout_seconds():
    return float(bot_config.get("summary_api.timeout_seconds", 30))

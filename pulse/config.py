"""Configuration loading for Portfolio Pulse.

Settings come from two places:
- ``config.yaml`` (optional) for schedule, news, storage and generation tuning
- environment variables (``.env`` supported) for API credentials and the
  database URL

Environment Variables:
    VERTESIA_API_KEY: Bearer token for the generation API
    VERTESIA_API_BASE: API base URL (default: https://api.vertesia.io/api/v1)
    VERTESIA_ENVIRONMENT_ID: Execution environment id
    VERTESIA_MODEL: Model identifier passed with each generation request
    PULSE_DATABASE_URL: SQLAlchemy URL for state storage
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


@dataclass
class ScheduleConfig:
    times: List[int] = field(default_factory=lambda: [8, 14, 20])
    days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])  # 0=Sunday
    check_interval_seconds: float = 60.0

    def validate(self) -> None:
        if not self.times:
            raise ValueError("schedule.times must contain at least one hour")
        if not self.days:
            raise ValueError("schedule.days must contain at least one weekday")
        bad_hours = [h for h in self.times if not 0 <= h <= 23]
        if bad_hours:
            raise ValueError(f"schedule.times has hours outside 0-23: {bad_hours}")
        bad_days = [d for d in self.days if not 0 <= d <= 6]
        if bad_days:
            raise ValueError(f"schedule.days has weekdays outside 0-6: {bad_days}")
        if self.check_interval_seconds <= 0:
            raise ValueError("schedule.check_interval_seconds must be positive")


@dataclass
class NewsConfig:
    lookback_days: int = 7
    min_exposure_for_priority: float = 10.0


@dataclass
class StorageConfig:
    database_url: str = "sqlite:///./data/pulse.db"
    portfolio_key: str = "pulse_portfolio"
    digests_key: str = "pulse_digests"
    timer_key: str = "pulse_timer_enabled"
    last_run_key: str = "pulse_last_run"
    max_history: int = 50


@dataclass
class GenerationConfig:
    initial_delay_seconds: float = 30.0
    poll_interval_seconds: float = 10.0
    backoff_factor: float = 1.5
    max_poll_interval_seconds: float = 60.0
    max_attempts: int = 12
    timeout_seconds: float = 600.0
    clock_skew_seconds: float = 60.0
    min_content_length: int = 50
    aggregation_mode: str = "flat"

    def validate(self) -> None:
        if self.aggregation_mode not in ("flat", "grouped"):
            raise ValueError(f"generation.aggregation_mode must be 'flat' or 'grouped', got {self.aggregation_mode!r}")
        if self.max_attempts < 1:
            raise ValueError("generation.max_attempts must be at least 1")
        if self.backoff_factor < 1:
            raise ValueError("generation.backoff_factor must be >= 1")


@dataclass
class VertesiaConfig:
    api_base: str = "https://api.vertesia.io/api/v1"
    api_key: Optional[str] = None
    environment_id: Optional[str] = None
    model: str = "publishers/anthropic/models/claude-3-7-sonnet"
    interaction: str = "PortfolioPulse"
    request_timeout: float = 30.0


@dataclass
class PulseConfig:
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    news: NewsConfig = field(default_factory=NewsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    vertesia: VertesiaConfig = field(default_factory=VertesiaConfig)


def _read_yaml(config_path: Path) -> Dict:
    if not config_path.exists():
        logger.warning("Config path %s not found. Using defaults.", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to parse %s: %s", config_path, exc)
        return {}


def _apply(target: Any, section: str, values: Any) -> None:
    """Copy known keys from a YAML mapping onto a config dataclass."""
    if values is None:
        return
    if not isinstance(values, dict):
        logger.warning("Config section '%s' must be a mapping; ignoring.", section)
        return
    for key, value in values.items():
        if not hasattr(target, key):
            logger.warning("Unknown config key '%s.%s'; skipping.", section, key)
            continue
        setattr(target, key, value)


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> PulseConfig:
    """Build a :class:`PulseConfig` from YAML defaults and the environment.

    Args:
        config_path: Path to the YAML config file. Missing files are not an error.

    Returns:
        Validated configuration.

    Raises:
        ValueError: If the schedule or generation section is invalid.
    """
    load_dotenv()
    raw = _read_yaml(Path(config_path))
    config = PulseConfig()

    _apply(config.schedule, "schedule", raw.get("schedule"))
    _apply(config.news, "news", raw.get("news"))
    _apply(config.storage, "storage", raw.get("storage"))
    _apply(config.generation, "generation", raw.get("generation"))
    _apply(config.vertesia, "vertesia", raw.get("vertesia"))

    config.schedule.times = sorted({int(h) for h in config.schedule.times})
    config.schedule.days = sorted({int(d) for d in config.schedule.days})
    config.schedule.validate()
    config.generation.validate()

    config.vertesia.api_key = os.getenv("VERTESIA_API_KEY") or config.vertesia.api_key
    config.vertesia.api_base = os.getenv("VERTESIA_API_BASE", config.vertesia.api_base).rstrip("/")
    config.vertesia.environment_id = os.getenv("VERTESIA_ENVIRONMENT_ID") or config.vertesia.environment_id
    config.vertesia.model = os.getenv("VERTESIA_MODEL", config.vertesia.model)
    config.storage.database_url = os.getenv("PULSE_DATABASE_URL", config.storage.database_url)

    if not config.vertesia.api_key:
        logger.warning("VERTESIA_API_KEY not set. Remote generation will fail until configured.")

    return config

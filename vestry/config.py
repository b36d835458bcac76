from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_GRACE_MINUTES, DEFAULT_TIMEZONE


class RedisConfig(BaseModel):
    """Redis state store settings; the connection comes from ``store.database_url``."""

    ttl_seconds: Optional[int] = None


class StoreConfig(BaseModel):
    """Keyed state store settings."""

    database_url: Optional[str] = None
    allow_memory_fallback: bool = True
    redis: RedisConfig = RedisConfig()


class ScheduleConfig(BaseModel):
    """Civil timezone and window sizes for scheduled jobs."""

    timezone: str = DEFAULT_TIMEZONE
    grace_minutes: int = DEFAULT_GRACE_MINUTES
    poll_offset_hours: int = 24
    notify_offset_hours: int = 27
    lookahead_hours: int = 48
    event_types: List[str] = Field(default_factory=lambda: ["Молодежное", "МОСТ"])


class TelegramConfig(BaseModel):
    bot_token: Optional[str] = None
    api_base: str = "https://api.telegram.org"
    admin_ids: List[int] = Field(default_factory=list)
    main_group_id: Optional[int] = None
    announcements_topic_id: Optional[int] = None
    timeout: float = 10.0
    max_retries: int = 3


class TransportConfig(BaseModel):
    """Chat transport configuration settings."""

    backend: Literal["inmemory", "telegram"] = "inmemory"


class DispatchConfig(BaseModel):
    serialize_per_subject: bool = True
    leaders_cache_ttl_seconds: int = 300


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class VestryConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreConfig = StoreConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    telegram: TelegramConfig = TelegramConfig()
    transport: TransportConfig = TransportConfig()
    dispatch: DispatchConfig = DispatchConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Optional[str] = None) -> VestryConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to VESTRY_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("VESTRY_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = VestryConfig(**data)
    else:
        config = VestryConfig()

    env_db_url = os.getenv("VESTRY_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.store.database_url = env_db_url
    env_token = os.getenv("TELEGRAM_BOT_TOKEN")
    if env_token:
        config.telegram.bot_token = env_token
    env_tz = os.getenv("VESTRY_TIMEZONE")
    if env_tz:
        config.schedule.timezone = env_tz
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        config.logging.level = env_level.upper()
    env_format = os.getenv("LOG_FORMAT")
    if env_format in ("json", "text"):
        config.logging.format = env_format
    return config

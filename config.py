"""
Configuration management for the ironman ranking crawler.
"""

import os
import threading
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict
from pathlib import Path
import json
import logging

from jsonschema import validate, ValidationError as SchemaValidationError

from ironman_ranking.utils.errors import ConfigurationError


DEFAULT_GROUPS = ["web", "software-dev", "self"]


@dataclass
class CrawlerConfig:
    """Crawler configuration settings."""
    base_url: str = "https://ithelp.ithome.com.tw/ironman/signup/list"
    request_timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    max_workers: int = 8
    requests_per_second: float = 5.0
    min_delay: float = 0.0
    max_delay: float = 0.0

    def to_crawler_options(self) -> Dict[str, Any]:
        """Options dictionary in the shape crawlers expect."""
        return {
            'base_url': self.base_url,
            'timeout': self.request_timeout,
            'max_workers': self.max_workers,
            'rate_limit': {
                'requests_per_second': self.requests_per_second,
                'min_delay': self.min_delay,
                'max_delay': self.max_delay
            },
            'retry': {
                'max_attempts': self.retry_attempts,
                'initial_delay': self.retry_delay
            }
        }


@dataclass
class RankingConfig:
    """Ranking and output settings."""
    groups: List[str] = field(default_factory=lambda: list(DEFAULT_GROUPS))
    min_subscribers: int = 10
    title_wrap_width: int = 119
    output_format: str = "table"


@dataclass
class SystemConfig:
    """Main system configuration."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_retention_days: int = 7


# Configuration schema for validation
CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "crawler": {
            "type": "object",
            "properties": {
                "base_url": {"type": "string", "pattern": "^https?://"},
                "request_timeout": {"type": "number", "minimum": 1, "maximum": 300},
                "retry_attempts": {"type": "integer", "minimum": 1, "maximum": 10},
                "retry_delay": {"type": "number", "minimum": 0, "maximum": 60.0},
                "max_workers": {"type": "integer", "minimum": 1, "maximum": 64},
                "requests_per_second": {"type": "number", "minimum": 0, "maximum": 100.0},
                "min_delay": {"type": "number", "minimum": 0, "maximum": 60.0},
                "max_delay": {"type": "number", "minimum": 0, "maximum": 60.0}
            },
            "additionalProperties": False
        },
        "ranking": {
            "type": "object",
            "properties": {
                "groups": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "minItems": 1
                },
                "min_subscribers": {"type": "integer", "minimum": 0},
                "title_wrap_width": {"type": "integer", "minimum": 10, "maximum": 1000},
                "output_format": {"type": "string", "enum": ["table", "json"]}
            },
            "additionalProperties": False
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        },
        "log_file": {"type": ["string", "null"]},
        "log_retention_days": {"type": "integer", "minimum": 1, "maximum": 365}
    },
    "additionalProperties": False
}


class ConfigManager:
    """Configuration manager with schema validation and environment overrides."""

    def __init__(self, config_path: str = "config.json", env_file: str = ".env"):
        self.config_path = Path(config_path)
        self.env_file = Path(env_file)
        self._config: Optional[SystemConfig] = None
        self._lock = threading.RLock()

    def validate_config(self, config_data: Dict[str, Any]) -> None:
        """Validate configuration data against schema."""
        try:
            validate(instance=config_data, schema=CONFIG_SCHEMA)
        except SchemaValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.message}",
                {"path": list(e.absolute_path)}
            )

        crawler = config_data.get("crawler", {})
        if crawler.get("min_delay", 0) > crawler.get("max_delay", crawler.get("min_delay", 0)):
            raise ConfigurationError("Configuration validation failed: min_delay exceeds max_delay")

    def load_config(self) -> SystemConfig:
        """Load configuration from file (if present) and environment variables."""
        with self._lock:
            if self.config_path.exists():
                self._config = self._load_from_file()
            else:
                self._config = SystemConfig()
                logging.info(f"No configuration file at {self.config_path}, using defaults")

            self._override_with_env_vars(self._config)
            return self._config

    def _load_from_file(self) -> SystemConfig:
        """Load configuration from JSON file with validation."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Failed to read configuration: {e}",
                {"config_path": str(self.config_path)}
            )

        self.validate_config(config_data)
        logging.info(f"Configuration loaded and validated from {self.config_path}")
        return self._dict_to_config(config_data)

    def _load_env_file(self) -> None:
        """Load KEY=VALUE lines from the .env file without overriding the real environment."""
        if not self.env_file.exists():
            return

        with open(self.env_file, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ.setdefault(key.strip(), value.strip())
        logging.info("Loaded environment variables from .env file")

    def _override_with_env_vars(self, config: SystemConfig) -> None:
        """Override configuration with environment variables."""
        self._load_env_file()

        groups = os.getenv("IRONMAN_GROUPS")
        if groups:
            # 支持逗号分隔的多个组别
            parsed = [group.strip() for group in groups.split(',') if group.strip()]
            if parsed:
                config.ranking.groups = parsed

        if os.getenv("IRONMAN_BASE_URL"):
            config.crawler.base_url = os.getenv("IRONMAN_BASE_URL")

        max_workers = os.getenv("IRONMAN_MAX_WORKERS")
        if max_workers:
            try:
                workers = int(max_workers)
            except ValueError:
                workers = 0
            if workers < 1:
                raise ConfigurationError(
                    "IRONMAN_MAX_WORKERS must be a positive integer",
                    {"value": max_workers}
                )
            config.crawler.max_workers = workers

        log_level = os.getenv("IRONMAN_LOG_LEVEL")
        if log_level:
            if log_level.upper() not in CONFIG_SCHEMA["properties"]["log_level"]["enum"]:
                raise ConfigurationError(
                    "IRONMAN_LOG_LEVEL is not a valid log level",
                    {"value": log_level}
                )
            config.log_level = log_level.upper()

    def _dict_to_config(self, data: Dict[str, Any]) -> SystemConfig:
        """Convert dictionary to SystemConfig object."""
        config = SystemConfig()

        if "crawler" in data:
            config.crawler = CrawlerConfig(**data["crawler"])

        if "ranking" in data:
            config.ranking = RankingConfig(**data["ranking"])

        config.log_level = data.get("log_level", config.log_level)
        config.log_file = data.get("log_file", config.log_file)
        config.log_retention_days = data.get("log_retention_days", config.log_retention_days)

        return config

    def export_config(self) -> Dict[str, Any]:
        """Export current configuration as dictionary."""
        with self._lock:
            if not self._config:
                return {}

            return {
                "crawler": asdict(self._config.crawler),
                "ranking": asdict(self._config.ranking),
                "log_level": self._config.log_level,
                "log_file": self._config.log_file,
                "log_retention_days": self._config.log_retention_days
            }

    def save_config(self, config_path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        with self._lock:
            if not self._config:
                raise ConfigurationError("No configuration loaded to save")

            save_path = Path(config_path) if config_path else self.config_path
            config_dict = self.export_config()

            # Validate before saving
            self.validate_config(config_dict)

            with open(save_path, 'w', encoding='utf-8') as f:
                json.dump(config_dict, f, indent=2, ensure_ascii=False)

            logging.info(f"Configuration saved to {save_path}")


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> SystemConfig:
    """Get the current system configuration."""
    return config_manager.load_config()

"""
Configuration management for the Contact Directory service.
Handles loading, validating, and providing access to application settings.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Application configuration settings."""
    host: str
    port: int
    debug: bool
    admin_user_ids: list[str]


@dataclass
class QuotaSettings:
    """Daily unlock quota settings."""
    daily_cap: int
    sync_interval_seconds: float
    retention_days: int


@dataclass
class PathsConfig:
    """Path configuration settings."""
    data_dir: str
    store_file: str
    records_file: str
    agencies_file: str


class ConfigManager:
    """Manages application configuration loading and access."""

    def __init__(self, config_file: str = "web_app_config.json"):
        self.config_file = Path(config_file)
        self._config: Optional[Dict[str, Any]] = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file and environment variables."""
        # Start with default config
        self._config = self._get_default_config()

        # Load base config from file
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    file_config = json.load(f)
                    # Merge file config with defaults
                    self._merge_config(file_config)
            except (json.JSONDecodeError, FileNotFoundError):
                # Keep default config if file is invalid or not found
                pass

        # Override with environment variables
        self._override_with_env()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration."""
        return {
            "app": {
                "host": "0.0.0.0",
                "port": 22581,
                "debug": False,
                "admin_user_ids": []
            },
            "quota": {
                "daily_cap": 50,
                "sync_interval_seconds": 1.0,
                "retention_days": 7
            },
            "paths": {
                "data_dir": "data",
                "store_file": "quota_store.json",
                "records_file": "contacts.json",
                "agencies_file": "agencies.json"
            }
        }

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Merge file configuration with current config."""
        if not isinstance(file_config, dict):
            return
        for section, values in file_config.items():
            if section in self._config:
                if isinstance(values, dict):
                    self._config[section].update(values)
                else:
                    self._config[section] = values
            else:
                self._config[section] = values

    def _override_with_env(self) -> None:
        """Override configuration with environment variables."""
        # App settings
        if os.getenv("APP_HOST"):
            self._config["app"]["host"] = os.getenv("APP_HOST")

        if os.getenv("APP_PORT"):
            self._config["app"]["port"] = int(os.getenv("APP_PORT"))

        if os.getenv("APP_DEBUG"):
            self._config["app"]["debug"] = os.getenv("APP_DEBUG").lower() == "true"

        if os.getenv("ADMIN_USER_IDS"):
            self._config["app"]["admin_user_ids"] = [
                uid.strip() for uid in os.getenv("ADMIN_USER_IDS").split(",") if uid.strip()
            ]

        # Quota settings
        if os.getenv("QUOTA_DAILY_CAP"):
            self._config["quota"]["daily_cap"] = int(os.getenv("QUOTA_DAILY_CAP"))

        if os.getenv("QUOTA_SYNC_INTERVAL"):
            self._config["quota"]["sync_interval_seconds"] = float(os.getenv("QUOTA_SYNC_INTERVAL"))

        if os.getenv("QUOTA_RETENTION_DAYS"):
            self._config["quota"]["retention_days"] = int(os.getenv("QUOTA_RETENTION_DAYS"))

        # Paths
        if os.getenv("DATA_DIR"):
            self._config["paths"]["data_dir"] = os.getenv("DATA_DIR")

    def get_app_config(self) -> AppConfig:
        """Get application configuration."""
        app_config = self._config["app"]
        return AppConfig(
            host=app_config["host"],
            port=app_config["port"],
            debug=app_config["debug"],
            admin_user_ids=app_config["admin_user_ids"]
        )

    def get_quota_settings(self) -> QuotaSettings:
        """Get quota configuration."""
        quota_config = self._config["quota"]
        return QuotaSettings(
            daily_cap=int(quota_config["daily_cap"]),
            sync_interval_seconds=float(quota_config["sync_interval_seconds"]),
            retention_days=int(quota_config["retention_days"])
        )

    def get_paths_config(self) -> PathsConfig:
        """Get paths configuration."""
        paths_config = self._config["paths"]
        return PathsConfig(
            data_dir=paths_config["data_dir"],
            store_file=paths_config["store_file"],
            records_file=paths_config["records_file"],
            agencies_file=paths_config.get("agencies_file", "agencies.json")
        )

    def get_config(self) -> Dict[str, Any]:
        """Get raw configuration dictionary."""
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)


# Global configuration instance
config_manager = ConfigManager()


def get_app_config() -> AppConfig:
    """Get application configuration."""
    return config_manager.get_app_config()


def get_quota_settings() -> QuotaSettings:
    """Get quota configuration."""
    return config_manager.get_quota_settings()


def get_paths_config() -> PathsConfig:
    """Get paths configuration."""
    return config_manager.get_paths_config()


def reload_config() -> None:
    """Reload configuration."""
    config_manager.reload()


def save_config() -> None:
    """Save configuration to file."""
    config_manager.save_config()

"""
Tests for configuration loading: defaults, file merge and env overrides.
"""
import json
import os
from unittest.mock import patch

from config_manager import ConfigManager


def write_config(tmp_path, payload) -> str:
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(payload))
    return str(config_file)


@patch.dict(os.environ, {}, clear=True)
def test_defaults_without_file(tmp_path):
    manager = ConfigManager(str(tmp_path / "missing.json"))

    quota = manager.get_quota_settings()
    assert quota.daily_cap == 50
    assert quota.sync_interval_seconds == 1.0
    assert quota.retention_days == 7

    paths = manager.get_paths_config()
    assert paths.store_file == "quota_store.json"
    assert paths.records_file == "contacts.json"
    assert paths.agencies_file == "agencies.json"
    assert manager.get_app_config().admin_user_ids == []


@patch.dict(os.environ, {}, clear=True)
def test_file_values_merge_with_defaults(tmp_path):
    manager = ConfigManager(write_config(tmp_path, {"quota": {"daily_cap": 10}}))

    quota = manager.get_quota_settings()
    assert quota.daily_cap == 10
    assert quota.retention_days == 7


@patch.dict(os.environ, {}, clear=True)
def test_invalid_file_keeps_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{broken")

    manager = ConfigManager(str(config_file))
    assert manager.get_quota_settings().daily_cap == 50


def test_env_overrides_file(tmp_path):
    env = {
        "QUOTA_DAILY_CAP": "5",
        "QUOTA_SYNC_INTERVAL": "0.5",
        "QUOTA_RETENTION_DAYS": "0",
        "ADMIN_USER_IDS": "alice, bob,,",
        "APP_PORT": "8000",
        "APP_DEBUG": "true",
        "DATA_DIR": "/srv/quota",
    }
    with patch.dict(os.environ, env, clear=True):
        manager = ConfigManager(write_config(tmp_path, {"quota": {"daily_cap": 10}}))

    quota = manager.get_quota_settings()
    assert quota.daily_cap == 5
    assert quota.sync_interval_seconds == 0.5
    assert quota.retention_days == 0

    app_config = manager.get_app_config()
    assert app_config.admin_user_ids == ["alice", "bob"]
    assert app_config.port == 8000
    assert app_config.debug is True
    assert manager.get_paths_config().data_dir == "/srv/quota"


@patch.dict(os.environ, {}, clear=True)
def test_save_and_reload(tmp_path):
    config_file = tmp_path / "config.json"
    manager = ConfigManager(str(config_file))
    manager._config["quota"]["daily_cap"] = 12
    manager.save_config()

    reloaded = ConfigManager(str(config_file))
    assert reloaded.get_quota_settings().daily_cap == 12

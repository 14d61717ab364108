from pathlib import Path
from typing import Optional

# Import configuration management
import sys
sys.path.append(str(Path(__file__).parent.parent))
from config_manager import ConfigManager

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from app.quota.factory import create_quota_module
from app.quota.models import QuotaConfig
from app.records.factory import create_records_module
from app.user_management.factory import create_user_management_module

BASE_DIR = Path(__file__).parent.parent


def create_app(
    config_manager: Optional[ConfigManager] = None,
    data_dir: Optional[Path] = None,
    store=None,
    clock=None,
) -> Flask:
    """Build the Flask application and wire its subsystems.

    Args:
        config_manager: Configuration source, defaults to web_app_config.json + env
        data_dir: Overrides the configured data directory
        store: Pre-built key-value store (tests pass an InMemoryStore)
        clock: Time source for the quota gate
    """
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_proto = 1,     # trust 1 hop for X-Forwarded-Proto
            x_host  = 1,     # trust 1 hop for X-Forwarded-Host
            x_prefix= 1)     # <-- pay attention to X-Forwarded-Prefix

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    config_manager = config_manager or ConfigManager()
    paths_config = config_manager.get_paths_config()
    app_config = config_manager.get_app_config()
    quota_settings = config_manager.get_quota_settings()

    if data_dir is None:
        data_dir = Path(paths_config.data_dir)
        if not data_dir.is_absolute():
            data_dir = BASE_DIR / data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # Subsystems
    # -------------------------------------------------------------------------

    user_management_module = create_user_management_module(
        admin_user_ids=app_config.admin_user_ids
    )
    user_service = user_management_module["service"]

    quota_module = create_quota_module(
        store_file=data_dir / paths_config.store_file,
        config=QuotaConfig(
            daily_cap=quota_settings.daily_cap,
            sync_interval_seconds=quota_settings.sync_interval_seconds,
            retention_days=quota_settings.retention_days
        ),
        user_service=user_service,
        store=store,
        clock=clock
    )

    records_module = create_records_module(
        records_file=data_dir / paths_config.records_file,
        agencies_file=data_dir / paths_config.agencies_file,
        gate=quota_module["gate"],
        user_service=user_service
    )

    # Register blueprints
    app.register_blueprint(quota_module["blueprint"])
    app.register_blueprint(records_module["blueprint"])
    app.register_blueprint(records_module["agencies_blueprint"])

    app.extensions["quota"] = quota_module
    app.extensions["records"] = records_module
    app.config["APP_SETTINGS"] = app_config

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    return app

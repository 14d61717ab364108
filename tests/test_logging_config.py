"""
Tests for the queue-based logging setup.
"""
import logging
import logging.handlers

import pytest

from app.logging_config import LOG_FORMAT, QueueLogging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    quota_level = logging.getLogger("app.quota").level
    werkzeug_level = logging.getLogger("werkzeug").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("app.quota").setLevel(quota_level)
    logging.getLogger("werkzeug").setLevel(werkzeug_level)


def test_setup_routes_root_through_queue(restore_root_logger):
    config = QueueLogging()
    config.setup(debug=False)
    try:
        root = logging.getLogger()
        assert config.active
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.handlers.QueueHandler)
        assert root.level == logging.INFO
        assert logging.getLogger("werkzeug").level == logging.WARNING
    finally:
        config.stop()
    assert not config.active


def test_quota_level_is_separate(restore_root_logger):
    config = QueueLogging()
    config.setup(debug=False, quota_level=logging.DEBUG)
    try:
        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("app.quota").getEffectiveLevel() == logging.DEBUG
    finally:
        config.stop()


def test_setup_twice_replaces_listener(restore_root_logger):
    config = QueueLogging()
    config.setup(debug=True)
    first = config._listener
    config.setup(debug=True)
    try:
        assert config._listener is not first
        assert len(logging.getLogger().handlers) == 1
    finally:
        config.stop()


def test_format_carries_thread_name():
    assert "%(threadName)s" in LOG_FORMAT

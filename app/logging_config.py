"""
Logging setup for the contact directory.

Request handlers and the quota sync threads log from several threads at once;
records go through a queue and a single listener writes them, tagged with the
thread name so ``quota-sync-<user>`` lines can be told apart from requests.
"""

import logging
import logging.handlers
import sys
from queue import Queue
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

# Quiet unless running with debug on
NOISY_LOGGERS = ("werkzeug", "urllib3", "asyncio")


class QueueLogging:
    """Owns the log queue and its listener thread."""

    def __init__(self):
        self._listener: Optional[logging.handlers.QueueListener] = None

    @property
    def active(self) -> bool:
        return self._listener is not None

    def setup(self, debug: bool = False, quota_level: Optional[int] = None,
              noisy: Iterable[str] = NOISY_LOGGERS) -> None:
        """
        Route the root logger through a queue.

        Args:
            debug: Log at DEBUG and keep third-party loggers verbose
            quota_level: Separate level for ``app.quota`` (e.g. DEBUG to trace
                sync ticks without turning on debug everywhere)
            noisy: Loggers capped at WARNING when not in debug mode
        """
        self.stop()

        log_queue: Queue = Queue()
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        self._listener = logging.handlers.QueueListener(
            log_queue, console_handler, respect_handler_level=True
        )
        self._listener.start()

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.addHandler(logging.handlers.QueueHandler(log_queue))
        root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

        if quota_level is not None:
            logging.getLogger("app.quota").setLevel(quota_level)

        if not debug:
            for name in noisy:
                logging.getLogger(name).setLevel(logging.WARNING)

    def stop(self) -> None:
        """Flush and stop the listener; the queue handler stays until the next setup."""
        if self._listener is not None:
            self._listener.stop()
            self._listener = None


queue_logging = QueueLogging()


def setup_logging(debug: bool = False, quota_level: Optional[int] = None) -> None:
    queue_logging.setup(debug=debug, quota_level=quota_level)


def stop_logging() -> None:
    queue_logging.stop()

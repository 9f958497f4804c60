"""
Logging for the client core and CLI.

Everything goes to stderr so command output on stdout stays pipeable. The
thread name is part of each line because refresh and sync run on their own
worker threads ("moments-refresh", "moment-sync").
"""
import logging
import sys
from datetime import datetime, timezone

from doinggreat.core.config import settings

LOG_FORMAT = "%(asctime)s.%(msecs)03dZ [%(levelname)s] %(threadName)s %(name)s: %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S"

# Request lines are logged by APIClient; the libraries' own chatter is noise
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "alembic.runtime.migration")


class UTCFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ct = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return ct.strftime(datefmt or DATE_FMT)


def setup_logging(level: str | None = None, stream=None) -> None:
    """Configure the root logger once. `level` falls back to LOG_LEVEL."""
    level = (level or settings.log_level).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(UTCFormatter(LOG_FORMAT, datefmt=DATE_FMT))
        root.addHandler(handler)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

import json
import logging
import logging.config
from typing import Optional


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the logger for a module, namespaced under the package."""
    return logging.getLogger(name or "track_restoration")


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Install a console handler for the package loggers.

    The library itself never calls this; only entry points (the CLI) do.

    Args:
        level: Log level name for the package loggers.
        json_format: Emit one JSON object per line instead of plain text.
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": "track_restoration.log.JsonFormatter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_format else "default",
                "level": level,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "track_restoration": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(config)
    get_logger(__name__).debug("Logging configured at level %s", level)


class JsonFormatter(logging.Formatter):
    """Structured single-line JSON log records."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)

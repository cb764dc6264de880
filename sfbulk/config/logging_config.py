# sfbulk/config/logging_config.py
import logging.config
import os
from pathlib import Path

LOG_LEVEL = os.getenv(
    "LOG_LEVEL", "INFO").upper()  # Default to INFO, allow override via env var
LOG_FILE = Path("logs") / "export_run.log"


def build_logging_config(level: str = LOG_LEVEL,
                         log_file: Path = LOG_FILE) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format":
                "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,  # Console level controlled by env var
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",  # Full request trace goes to the file
                "formatter": "standard",
                "filename": str(log_file),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "file"],
                "level": "DEBUG",
                "propagate": False,
            },
            "urllib3": {
                "level": "WARNING",
                "propagate": True,
            },
        },
    }


def setup_logging(level: str = LOG_LEVEL, log_file: Path = LOG_FILE):
    """Applies the logging configuration."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(level.upper(), log_file))
    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured. Console Level: {level.upper()}, File Level: DEBUG"
    )

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional
import json

# Attributes passed through ``extra=`` that are worth surfacing in structured logs
CONTEXT_FIELDS = ("owner_id", "folder_id", "document_id", "storage_key", "path")

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
NAME_COLOR = "\033[94m"
RESET = "\033[0m"

NOISY_LOGGERS = {
    "pymongo": logging.WARNING,
    "beanie": logging.WARNING,
    "urllib3": logging.WARNING,  # minio's transport
    "httpx": logging.WARNING,
    "sentry_sdk": logging.WARNING,
    "uvicorn.access": logging.INFO,
    "uvicorn.error": logging.INFO,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, tagged with the service name"""

    def __init__(self, service: str = "dms"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = str(value)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter for local development"""

    def format(self, record: logging.LogRecord) -> str:
        # work on a copy so other handlers keep the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{LEVEL_COLORS.get(record.levelname, RESET)}{record.levelname}{RESET}"
        record.name = f"{NAME_COLOR}{record.name}{RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    app_name: str = "DMS",
    enable_json: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger for the API process.

    Args:
        level: Logging level name
        app_name: Service name written into JSON records
        enable_json: JSON lines on stdout instead of coloured text
        log_file: Optional file that always receives JSON lines
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    if enable_json:
        console_handler.setFormatter(JSONFormatter(service=app_name))
    else:
        console_handler.setFormatter(ColoredFormatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JSONFormatter(service=app_name))
        root_logger.addHandler(file_handler)

    for name, logger_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(logger_level)

    logging.getLogger("dms").info(f"Logging configured for {app_name} at {level.upper()}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

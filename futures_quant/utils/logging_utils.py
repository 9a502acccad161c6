import json
import logging
import os
from logging.handlers import RotatingFileHandler

_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5


class JsonLogFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _resolve_logs_dir() -> str:
    candidate = str(os.getenv("FQ_LOG_DIR", "logs") or "").strip()
    return candidate or "logs"


def _use_json() -> bool:
    return os.getenv("FQ_JSON_LOG", "0").strip().lower() in {"1", "true", "yes"}


def _rotating_handler(filename: str, formatter: logging.Formatter) -> RotatingFileHandler:
    logs_dir = _resolve_logs_dir()
    os.makedirs(logs_dir, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(logs_dir, filename),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
    )
    handler.setFormatter(formatter)
    return handler


def _ensure_root_log_handler(formatter: logging.Formatter, level: str | int) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if bool(getattr(handler, "_futures_root_file_handler", False)):
            return
    root_file_handler = _rotating_handler("futures_quant.log", formatter)
    root_file_handler._futures_root_file_handler = True
    root.addHandler(root_file_handler)


def setup_logging(name="futures_quant", level: str | int = "INFO"):
    """Sets up a logger with a console handler and a rotating file handler.

    Module loggers below ``name`` (``futures_quant.generation.pipeline`` and so on)
    propagate into it, so calling this once from the CLI is enough.
    """
    if isinstance(level, str):
        level = level.strip().upper() or "INFO"
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Prevent duplicate handlers when setup_logging is called multiple times.
    if logger.handlers:
        return logger

    plain_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    formatter = JsonLogFormatter() if _use_json() else plain_formatter
    _ensure_root_log_handler(formatter, level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)
    logger.addHandler(_rotating_handler(f"{name}.log", formatter))
    return logger

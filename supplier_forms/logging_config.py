"""Logging setup shared by the API and the CLI."""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from supplier_forms.config import config

_LOGGING_CONFIGURED = False
_RESERVED_LOG_RECORD_FIELDS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_logging() -> None:
    """Attach a stdout handler to the ``supplier_forms`` logger once."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    app_config = config.app
    level = getattr(logging, app_config.log_level, logging.INFO)

    formatter: logging.Formatter
    if app_config.log_json:
        formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    app_logger = logging.getLogger("supplier_forms")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(level)
    app_logger.propagate = False

    logging.getLogger(__name__).info(
        "Logging configured. level=%s json=%s",
        app_config.log_level,
        str(app_config.log_json).lower(),
    )
    _LOGGING_CONFIGURED = True

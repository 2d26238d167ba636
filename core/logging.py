"""
Structured logging for Tierwise

JSON lines in deployed environments, plain text for local runs. Every record
carries the domain that emitted it (``d0``, ``d5``, ``d11`` or ``core``) and,
inside a ranking flow, its ``run_id``.
"""
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from core.config import settings

_DOMAIN_PACKAGE = re.compile(r"^(d\d+)_")

# Chatty client libraries
QUIET_LOGGERS = ("httpx", "httpcore", "redis")


def domain_for(name: str) -> str:
    """Domain tag for a logger name: ``d5_scoring.ranking`` -> ``d5``"""
    match = _DOMAIN_PACKAGE.match(name)
    return match.group(1) if match else "core"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding app, version, environment and domain fields"""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["app"] = settings.app_name
        log_record["version"] = settings.app_version
        log_record["environment"] = settings.environment
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record.setdefault("domain", domain_for(record.name))

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Install a single stdout handler on the root logger"""
    root_logger = logging.getLogger()
    level = (level or settings.log_level).upper()
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if (log_format or settings.log_format) == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter merging bound context into each record; per-call extras win"""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def with_context(self, **context) -> "LoggerAdapter":
        """New adapter with additional bound context, e.g. a flow's run_id"""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger bound to its domain and optional extra context

    Example:
        logger = get_logger(__name__)
        logger.with_context(run_id=run_id).warning("Quota exhausted", extra={"action_class": "web"})
    """
    context.setdefault("domain", domain_for(name))
    return LoggerAdapter(logging.getLogger(name), context)


setup_logging()

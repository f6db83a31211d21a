"""Structured logging configuration with correlation IDs and secret redaction."""

import logging
import re
import sys
from typing import Any

import orjson
import structlog
from structlog.processors import CallsiteParameter


class SecretRedactor:
    """Redact credentials and contact details from log values."""

    EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")
    API_KEY_PATTERN = re.compile(r"\b(sk-|gsk_|AIza|api[_-]?key[\s=:]+)[\w-]{16,}\b", re.IGNORECASE)
    JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9-_]+\.[A-Za-z0-9-_]+\.[A-Za-z0-9-_]+\b")

    @classmethod
    def redact(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value

        value = cls.EMAIL_PATTERN.sub("[EMAIL_REDACTED]", value)
        value = cls.API_KEY_PATTERN.sub("[API_KEY_REDACTED]", value)
        value = cls.JWT_PATTERN.sub("[JWT_REDACTED]", value)
        return value


def _orjson_dumps(obj: Any, **kwargs: Any) -> str:
    # stdlib handlers expect text, orjson produces bytes
    return orjson.dumps(obj, default=kwargs.get("default")).decode()


def redact_sensitive_data(logger, method_name, event_dict):
    """Redact secrets from every string value of an event."""
    for key, value in event_dict.items():
        if key in ("timestamp", "level", "logger", "request_id"):
            continue
        if isinstance(value, str):
            event_dict[key] = SecretRedactor.redact(value)
        elif isinstance(value, dict):
            event_dict[key] = {k: SecretRedactor.redact(v) for k, v in value.items()}
    return event_dict


HANDLER_NAME = "lesson_ai_system"


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_secrets: bool = True,
) -> None:
    """Configure structlog and route standard library records through the same renderer.

    Records from ``logging`` loggers keep the fields passed as ``extra=`` and
    go through the same redaction as structlog events.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    foreign_pre_chain = [*shared_processors, structlog.stdlib.ExtraAdder()]

    processors = [structlog.stdlib.filter_by_level, *shared_processors]
    if redact_secrets:
        processors.append(redact_sensitive_data)
        foreign_pre_chain.append(redact_sensitive_data)

    processors.extend(
        [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    CallsiteParameter.FILENAME,
                    CallsiteParameter.FUNC_NAME,
                    CallsiteParameter.LINENO,
                ]
            ),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ]
    )

    if format == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(serializer=_orjson_dumps),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=foreign_pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

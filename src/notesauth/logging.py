import logging
import re
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# Keys whose values are credentials in any event
SECRET_KEYS = frozenset(
    {"password", "old_password", "new_password", "token", "raw_token", "auth_token", "link", "body"}
)
TOKEN_IN_TEXT = re.compile(r"(token=)[^&\s\"'#]+")
REDACTED = "[redacted]"


def redact_text(text: str) -> str:
    """Mask the value of every ``token=`` pair in a URL, query string or message."""
    return TOKEN_IN_TEXT.sub(rf"\g<1>{REDACTED}", text)


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """structlog processor: drop credential values before rendering."""
    for key, value in list(event_dict.items()):
        if key in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = redact_text(value)
    return event_dict


class RedactTokenFilter(logging.Filter):
    """Mask ``token=`` in stdlib records, e.g. uvicorn access lines for magic-link URLs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(_redact_arg(arg) for arg in record.args)
        return True


def _redact_arg(arg: Any) -> Any:
    return redact_text(arg) if isinstance(arg, str) else arg


def setup_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactTokenFilter())

    # Suppress verbose MongoDB and Redis logs
    for name in ("pymongo", "pymongo.topology", "pymongo.connection", "pymongo.command", "redis"):
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

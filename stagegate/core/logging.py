"""structlog setup for stagegate.

Host applications call `configure_logging()` once at start-up (it is also
exported as `stagegate.configure_logging`). Without it structlog falls back to
its default console output, which is fine for tests and scripts.

Domain modules never take an entry id argument just to log it. The service
binds the movement being checked with `movement_log_context`, and
`merge_contextvars` stamps those keys onto every event emitted inside it,
including warnings from rule classification and appointment filtering.
"""

import logging
import logging.config
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from stagegate.core.config import Settings, get_settings

_PRE_CHAIN = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _renderer(json_logs: bool):
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib records through one formatter.

    Args:
        settings: Defaults to get_settings(); reads log_level and json_logs
    """
    if settings is None:
        settings = get_settings()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "stagegate": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    _renderer(settings.json_logs),
                ],
                "foreign_pre_chain": _PRE_CHAIN,
            },
        },
        "handlers": {
            "stagegate": {
                "class": "logging.StreamHandler",
                "formatter": "stagegate",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stagegate"], "level": settings.log_level},
    })

    structlog.configure(
        processors=_PRE_CHAIN + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def movement_log_context(entry_id: str, from_stage_id: str, to_stage_id: str) -> Iterator[None]:
    """Bind the movement under check to every log event emitted in the block."""
    with structlog.contextvars.bound_contextvars(
        entry_id=entry_id,
        from_stage_id=from_stage_id,
        to_stage_id=to_stage_id,
    ):
        yield

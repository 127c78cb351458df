"""structlog configuration for formstate.

formstate is a library: it never configures logging on import. Applications
(or test sessions) that want readable output call :func:`configure_logging`
once. Two output modes:

- Console (default): ``structlog.dev.ConsoleRenderer``, colored on a TTY
- JSON (``log_json=True``): one JSON object per line

Engine modules log through stdlib ``logging``; the built-in devtools plugin
logs through structlog. Both are rendered by the same
``ProcessorFormatter`` so a JSON consumer sees a single event stream.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import TextIO

import structlog

LIBRARY_LOGGER = "formstate"

_NOISY_LOGGERS = ("asyncio",)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: TextIO) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
    quiet: Iterable[str] = _NOISY_LOGGERS,
) -> None:
    """Route formstate's stdlib and structlog output through one handler.

    Calling it again replaces the previous handler instead of stacking.

    Args:
        verbose: DEBUG for the ``formstate`` namespace (scheduling decisions,
            devtools events). When False, only WARNING+ (listener failures).
        log_json: Render JSON lines instead of console output.
        stream: Destination; defaults to ``sys.stderr``.
        quiet: Third-party loggers pinned to WARNING regardless of *verbose*.
    """
    stream = stream if stream is not None else sys.stderr
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json, stream),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger(LIBRARY_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

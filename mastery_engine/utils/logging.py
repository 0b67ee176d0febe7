# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for the engine, built on structlog.

Engine modules log through the standard library with
logging.getLogger(__name__) and %-style arguments. setup_logging()
installs a structlog ProcessorFormatter on the root logger, so those
records are rendered as JSON in production and as console output in
development, enriched with whatever learner and session context the
current action has bound.

The session orchestrator scopes every public call with
scoped_log_context and binds learner_id and session_id once it knows
them, so every log line emitted while handling the action carries both.

Example:
    >>> setup_logging(get_settings())
    >>> with log_context(learner_id="learner-1"):
    ...     logging.getLogger("mastery_engine.demo").info("Answer recorded")
"""

import functools
import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, ParamSpec, TypeVar

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from mastery_engine.core.config.settings import Settings

P = ParamSpec("P")
R = TypeVar("R")

# Name of the root handler owned by setup_logging()
HANDLER_NAME = "mastery_engine"


def _renderer(settings: "Settings") -> list[Processor]:
    if settings.is_development or settings.debug:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging(settings: "Settings") -> None:
    """Route engine and structlog output through one structured handler.

    Calling it again replaces the handler installed by the previous call.

    Args:
        settings: Engine settings providing environment, debug flag and
            log level.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderer(settings),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # The Redis client is chatty at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)

    logging.getLogger("mastery_engine").setLevel(log_level)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to every later log line of the current scope.

    Args:
        **kwargs: Key-value pairs such as learner_id or session_id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


@contextmanager
def log_context(**kwargs: object) -> Iterator[None]:
    """Scope log context to a block.

    Whatever is bound inside the block, including later bind_context()
    calls, is dropped on exit and the previous context is restored.
    """
    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)
    try:
        yield
    finally:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**previous)


def scoped_log_context(func: Callable[P, R]) -> Callable[P, R]:
    """Run each call of func inside its own log_context()."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with log_context():
            return func(*args, **kwargs)

    return wrapper

"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys

import structlog

# Libraries that log progress bars and download chatter while the model loads
_MODEL_LOGGERS = ("sentence_transformers", "transformers", "huggingface_hub")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json" or (log_format == "auto" and not sys.stderr.isatty()):
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(level: str = "INFO", log_format: str = "auto") -> None:
    """Configure structlog for the server process.

    ``log_format`` is ``console``, ``json`` or ``auto`` (console on a
    terminal, JSON lines otherwise). Output goes to stderr.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    for name in _MODEL_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

"""
fhirside.core.observability - Structured Logging Setup
========================================================

Every FhirSide module logs through structlog:

    logger = structlog.get_logger()
    self._logger = logger.bind(component="export_orchestrator")
    self._logger.info("export_started", job_id=job.id, scope=job.kind.value)

This module wires structlog on top of the standard library logging module
once per process, so that uvicorn's own log records and FhirSide's events
end up in the same stream with the same level filter.

Renderers:
    console → structlog.dev.ConsoleRenderer (colour-free key=value lines)
    json    → structlog.processors.JSONRenderer (one JSON object per line)
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog and stdlib logging.

    Safe to call more than once; the latest call wins.

    Args:
        level: Logging level name (DEBUG, INFO, ...).
        fmt: "console" or "json".
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

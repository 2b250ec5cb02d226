"""
Structured logging setup.

Every module logs through `structlog.get_logger(__name__)`; this wires
structlog onto the standard library so levels can be filtered.
"""

import logging
import sys
import structlog


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure logging.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
        fmt: "json" for machine-readable lines, "console" for humans
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

"""
structlog setup for command line use. The library itself only calls
structlog.get_logger() and leaves configuration to the application.
"""

import logging
import sys
from typing import Any, Dict

import structlog


def setup_logging(log_config: Dict[str, Any] = None):
    """Configure stdlib logging and structlog from the ``logging`` config section."""
    log_config = log_config or {}
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    if log_config.get('format', 'json') == 'console':
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
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
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

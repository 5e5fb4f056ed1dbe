"""
Logging setup: stdlib handlers with structlog on top.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

import structlog

from ..config import Settings, get_settings

# Applied to records from plain stdlib loggers before rendering
FOREIGN_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def setup_logging(
    settings: Optional[Settings] = None,
    log_file: Union[str, Path, None] = None,
) -> List[logging.Handler]:
    """
    Configure logging to console and, optionally, to a file.

    The root logger level is ``settings.app_log_level``. Production renders
    one JSON object per line, anything else the structlog console format.
    Returns the handlers attached to the root logger.
    """
    settings = settings or get_settings()

    if settings.is_production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=FOREIGN_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root = logging.getLogger()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(settings.app_log_level)

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
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger().debug(
        "Logging configured",
        level=settings.app_log_level,
        env=settings.app_env,
        log_file=str(log_file) if log_file else None,
    )
    return handlers

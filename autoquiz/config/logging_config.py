"""structlog configuration shared by the CLI and the API server."""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and the structlog processor chain.

    Args:
        level: Root log level name, e.g. "INFO" or "DEBUG".
    """
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(message)s")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

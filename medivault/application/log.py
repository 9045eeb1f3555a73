import logging
import sys

import structlog


def configure_logging(level='INFO'):
    """
    Route structlog through the standard logging module so Flask's
    handlers and pytest's caplog see the same events.
    """
    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=['event', 'level']),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

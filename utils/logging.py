"""Logging configuration for the application."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import g, has_request_context

# Loggers created with logging.getLogger(__name__) in these packages share the app handlers
APP_PACKAGES = ('services', 'routes', 'models')


class RequestIdFilter(logging.Filter):
    """Attach the current request id (or '-') to every record."""

    def filter(self, record):
        record.request_id = g.get('request_id', '-') if has_request_context() else '-'
        return True


def setup_logging(app):
    """Configure application logging."""
    # Create logs directory if it doesn't exist
    log_dir = Path(app.root_path) / 'logs'
    log_dir.mkdir(exist_ok=True)

    request_filter = RequestIdFilter()

    # Set up file handler with rotation
    file_handler = RotatingFileHandler(
        log_dir / 'app.log',
        maxBytes=1024 * 1024,  # 1MB
        backupCount=10
    )
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s'
    ))
    file_handler.setLevel(logging.INFO)
    file_handler.addFilter(request_filter)

    # Set up console handler for development
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '%(levelname)s [%(name)s] [%(request_id)s] %(message)s'
    ))
    console_handler.setLevel(logging.DEBUG if app.debug else logging.WARNING)
    console_handler.addFilter(request_filter)

    level = logging.DEBUG if app.debug else logging.INFO
    for logger in [app.logger] + [logging.getLogger(name) for name in APP_PACKAGES]:
        logger.setLevel(level)
        if logger.handlers:
            continue  # already configured by an earlier app instance
        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    # Keep urllib3 connection chatter out of debug logs
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    app.logger.info('Logging initialized')

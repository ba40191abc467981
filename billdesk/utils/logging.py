"""
billdesk/utils/logging.py
──────────────────────────
Rotating file + stdout logging for the billing service.
"""
import os
import logging
from logging.handlers import RotatingFileHandler
from flask import has_request_context, request


class RequestFormatter(logging.Formatter):
    """
    Adds the request method, path and client address to each record
    when one is available; '-' otherwise (CLI commands, startup).
    """
    def format(self, record):
        if has_request_context():
            record.method = request.method
            record.path = request.path
            record.remote_addr = request.remote_addr
        else:
            record.method = '-'
            record.path = '-'
            record.remote_addr = '-'
        return super().format(record)


def setup_logging(app):
    """
    Configure rotating file logging: logs/app.log
    Max size: 5MB
    Backup count: 5 files
    Format: timestamp | level | logger | client | method path | message

    app.logger is the 'billdesk' logger, so module loggers such as
    billdesk.billing.sessions propagate into the same handlers.
    """
    level = logging.DEBUG if app.debug else logging.INFO
    handlers = []

    # 1. File Logger (skipped when the filesystem is read-only)
    if app.config.get('LOG_TO_FILE', True):
        log_dir = app.config.get('LOG_DIR') or os.path.join(app.root_path, '..', 'logs')
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'app.log'),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
        except OSError as exc:
            app.logger.warning(f"File logging disabled: {exc}")
        else:
            file_handler.setFormatter(RequestFormatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | '
                '%(method)s %(path)s | %(message)s'
            ))
            file_handler.setLevel(level)
            handlers.append(file_handler)

    # 2. Stdout Logger (container / platform logs)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    ))
    stream_handler.setLevel(level)
    handlers.append(stream_handler)

    for handler in handlers:
        app.logger.addHandler(handler)

    app.logger.setLevel(level)
    app.logger.info("Billdesk billing service startup")

# logger.py - Centralized logging configuration
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"


def setup_logger(name, log_file=None, level=logging.INFO, log_dir="logs", to_file=True):
    """Set up a logger with file rotation"""
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(level)

    if to_file:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)
        if not log_file:
            log_file = os.path.join(log_dir, f"{name}.log")

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10240,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    # Console handler for development
    if os.environ.get("FLASK_ENV") != "production":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(
            "%(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(console_handler)

    return logger


def configure_app_logging(app):
    """Attach the file/console handlers to app.logger and the commissions loggers."""
    to_file = app.config.get("LOG_TO_FILE", True)
    log_dir = app.config.get("LOG_DIR", "logs")
    level = logging.DEBUG if app.debug else logging.INFO

    if to_file:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            maxBytes=10240,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.INFO)

        app.logger.handlers.clear()
        app.logger.addHandler(file_handler)
        app.logger.propagate = False  # Prevent duplicate logs

    app.logger.setLevel(level)

    # Also add console handler for development
    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        app.logger.addHandler(console_handler)

    setup_logger("commissions", level=level, log_dir=log_dir, to_file=to_file)
    return app.logger

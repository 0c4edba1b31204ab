"""
Centralized Logging Configuration

When running in containers (Docker/Kubernetes/Fly.io), timestamps are omitted
from the formatter since the container runtime adds its own.

Usage:
    from clinic_sync.utils.logging_config import configure_logging
    configure_logging()
"""
import os
import sys
import logging

IS_CONTAINERIZED = bool(
    os.environ.get('FLY_APP_NAME') or
    os.environ.get('KUBERNETES_SERVICE_HOST') or
    os.path.exists('/.dockerenv')
)

CONTAINER_FORMAT = "[%(name)s] %(levelname)s: %(message)s"
LOCAL_FORMAT = "[%(asctime)s] [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every request at INFO/DEBUG
NOISY_LOGGERS = (
    'httpx',
    'httpcore',
    'hpack',
    'googleapiclient.discovery',
    'googleapiclient.discovery_cache',
    'google.auth.transport.requests',
    'apscheduler.executors.default',
)


def configure_logging(level: int = None, force: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (default: LOG_LEVEL env var or INFO)
        force: Force reconfiguration even if already configured
    """
    if level is None:
        level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    root_logger = logging.getLogger()

    if root_logger.handlers and not force:
        return

    if force:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    log_format = CONTAINER_FORMAT if IS_CONTAINERIZED else LOCAL_FORMAT
    datefmt = None if IS_CONTAINERIZED else DATE_FORMAT

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt=datefmt))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

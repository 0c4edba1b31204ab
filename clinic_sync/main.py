"""
ASGI entry point: ``uvicorn clinic_sync.main:app``
"""
import logging

from .app_factory import create_app
from .utils.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = create_app()

"""Main entry point for the calendar sync server"""
import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before the app reads its configuration
load_dotenv()

from clinic_sync.utils.logging_config import configure_logging  # noqa: E402

configure_logging()
logger = logging.getLogger(__name__)

logger.info("Starting calendar sync server...")
logger.info(f"Python version: {sys.version}")

try:
    from clinic_sync.main import app  # noqa: E402
    logger.info("Successfully imported FastAPI app from clinic_sync.main")
except Exception as e:
    logger.error(f"Failed to import app: {e}")
    raise

__all__ = ['app']

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8080))
    logger.info(f"Starting server on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)

import logging
import sys

from google.cloud import logging as gcp_logging

from classhub.core.config import settings


def setup_logging():
    """Setup logging with Cloud Logging fallback to console"""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    try:
        client = gcp_logging.Client()
        client.setup_logging(log_level=level)
        logging.getLogger().setLevel(level)
        logging.debug(f"Cloud Logging enabled, allowed CORS origins: {settings.cors_origins}")
    except Exception:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )
        logging.getLogger().setLevel(level)
        logging.getLogger(__name__).info("Cloud Logging unavailable, logging to stdout")

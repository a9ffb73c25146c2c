import json
import logging
import os
from tempfile import NamedTemporaryFile

from fastapi import FastAPI

from classhub.initializers.cloud_logging import setup_logging
from classhub.initializers.firebase import initialize_firebase
from classhub.initializers.firestore import initialize_firestore


logger = logging.getLogger(__name__)


def _materialize_inline_credentials() -> None:
    """Write inline JSON credentials to a file for libraries that expect a path"""
    creds_value = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if not creds_value or os.path.exists(creds_value):
        return

    try:
        json.loads(creds_value)
    except json.JSONDecodeError:
        return

    with NamedTemporaryFile(mode="w", delete=False, prefix="gcp-sa-", suffix=".json") as tf:
        tf.write(creds_value)
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = tf.name


async def startup_handler(app: FastAPI):
    setup_logging()
    _materialize_inline_credentials()
    initialize_firebase()
    app.state.db = initialize_firestore()
    logger.info("Firebase and Firestore initialized")

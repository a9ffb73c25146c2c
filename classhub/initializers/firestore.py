import json
import os

from fastapi import Request
from google.cloud.firestore import Client
from google.oauth2 import service_account

from classhub.core.config import settings


def initialize_firestore() -> Client:
    """Initializes Firestore client

    Handles credentials from:
    - File path (local development)
    - JSON string (Cloud Run --update-secrets)
    - Default credentials (Cloud Run service account)
    """
    database_id = os.getenv("FIRESTORE_DATABASE_ID", settings.FIRESTORE_DATABASE_ID)
    cred_value = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

    if not cred_value:
        return Client(database=database_id)

    if os.path.exists(cred_value):
        credentials = service_account.Credentials.from_service_account_file(cred_value)
        return Client(database=database_id, credentials=credentials)

    try:
        cred_dict = json.loads(cred_value)
    except json.JSONDecodeError:
        return Client(database=database_id)

    credentials = service_account.Credentials.from_service_account_info(cred_dict)
    return Client(database=database_id, credentials=credentials)


def get_db(request: Request):
    """FastAPI dependency to get Firestore database from app state"""
    return request.app.state.db

import json
import os

import firebase_admin
from firebase_admin import credentials

from classhub.core.config import settings


def initialize_firebase():
    """Initializes the Firebase Admin app (used for auth) once per process"""
    if firebase_admin._apps:
        return

    cred_value = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", settings.GOOGLE_APPLICATION_CREDENTIALS)

    # Either a path to a service account file or the JSON content itself
    if os.path.exists(cred_value):
        cred = credentials.Certificate(cred_value)
    else:
        cred = credentials.Certificate(json.loads(cred_value))

    firebase_admin.initialize_app(cred)

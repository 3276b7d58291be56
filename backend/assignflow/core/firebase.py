import json
import base64
import logging
from functools import lru_cache

from firebase_admin import credentials, initialize_app, get_app, firestore
from assignflow.core.config import settings

logger = logging.getLogger("assignflow")


def init_firebase():
    try:
        get_app()
        logger.info("Firebase Admin SDK already initialized")
        return
    except ValueError:
        pass

    if settings.FIREBASE_CREDENTIALS_B64:
        try:
            decoded_json = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
            service_account_info = json.loads(decoded_json)
        except Exception as e:
            raise RuntimeError(f"Failed to decode or parse FIREBASE_CREDENTIALS_B64: {e}")
        cred = credentials.Certificate(service_account_info)
        logger.info(f"Firebase credentials loaded | Project: {service_account_info.get('project_id')}")
    elif settings.GOOGLE_APPLICATION_CREDENTIALS:
        cred = credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS)
    else:
        # Falls back to application default credentials (Cloud Run, emulator)
        cred = credentials.ApplicationDefault()

    initialize_app(cred)
    logger.info("Firebase Admin SDK initialized")


@lru_cache()
def get_db():
    """
    Firestore client, created on first use.
    Routes receive it through Depends(get_db) so tests can swap it out.
    """
    init_firebase()
    client = firestore.client()
    logger.info("Firestore client ready")
    return client

import logging

import firebase_admin
from firebase_admin import credentials, firestore

from app.utils.settings import Settings

log = logging.getLogger(__name__)


def init_firebase(settings: Settings):
    """Inicializa firebase_admin una sola vez y devuelve el cliente de Firestore."""
    try:
        firebase_admin.get_app()
    except ValueError:
        if settings.firebase_credentials:
            cred = credentials.Certificate(settings.firebase_credentials)
        else:
            cred = credentials.ApplicationDefault()
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        firebase_admin.initialize_app(cred, options)
        log.info("Firebase inicializado (project=%s)", settings.firebase_project_id or "default")
    return firestore.client()

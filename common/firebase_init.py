"""Firestore client for the review store, backed by the Firebase Admin SDK."""

import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore

from common.config import AppSettings, get_settings

logger = logging.getLogger(__name__)


def _certificate(value: str) -> credentials.Certificate:
    if value.lstrip().startswith("{"):
        return credentials.Certificate(json.loads(value))
    return credentials.Certificate(value)


def initialize_firestore(settings: Optional[AppSettings] = None):
    """
    Return a Firestore client, initializing the default Firebase app on first use.

    With ``SERVICE_FILE_LOC`` unset the SDK falls back to application default
    credentials.
    """
    if firebase_admin._apps:
        return firestore.client()

    settings = settings or get_settings()
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None

    if settings.service_file_loc:
        firebase_admin.initialize_app(_certificate(settings.service_file_loc), options)
        logger.info("Firestore initialized from service account credentials")
    else:
        firebase_admin.initialize_app(options=options)
        logger.info("Firestore initialized with application default credentials")

    return firestore.client()

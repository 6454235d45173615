import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from ..config import Settings

logger = logging.getLogger(__name__)


def initialize_firebase_app(settings: Settings) -> firebase_admin.App:
    """
    Initialize (or reuse) the default Firebase Admin app.

    Args:
        settings: Application settings holding the service account JSON

    Returns:
        The initialized Firebase app
    """
    try:
        # Try to get the existing default app
        app = firebase_admin.get_app()
        logger.info("Retrieved existing Firebase app")
        return app
    except ValueError:
        pass

    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id

    cert_json = settings.firebase_secret
    if not cert_json:
        # Fall back to Application Default Credentials on managed runtimes
        logger.info("Firebase secret not set, using application default credentials")
        app = firebase_admin.initialize_app(options=options or None)
        return app

    # Parse credentials JSON, which may arrive double-encoded from env files
    cert_dict = json.loads(cert_json)
    if isinstance(cert_dict, str):
        cert_dict = json.loads(cert_dict)
    cred = credentials.Certificate(cert_dict)

    app = firebase_admin.initialize_app(credential=cred, options=options or None)
    logger.info(f"Firebase app initialized. App name: {app.name}")
    return app


def delete_firebase_app(app: Optional[firebase_admin.App]) -> None:
    if app is None:
        return
    try:
        firebase_admin.delete_app(app)
        logger.info("Firebase app deleted")
    except ValueError as e:
        logger.warning(f"Firebase app already deleted: {str(e)}")

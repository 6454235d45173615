from .app import delete_firebase_app, initialize_firebase_app
from .messaging import FcmTransport
from .store import FirestoreStore

__all__ = ['FcmTransport', 'FirestoreStore', 'delete_firebase_app', 'initialize_firebase_app']

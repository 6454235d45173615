import logging
from typing import Optional

from .config import Settings, settings as default_settings
from .media import MediaDerivativePipeline, PillowCodec
from .notifications import EventRouter, NotificationDispatcher, PayloadRenderer, TokenDirectory
from .stories import ExpiryReaper
from .users import AccountService

logger = logging.getLogger(__name__)


class AppContext:
    """
    Clients and components shared by every handler in the process.

    Created once at startup and passed explicitly; nothing reads it from
    module globals.
    """

    def __init__(self, settings: Settings, store, storage, transport, codec=None, firebase_app=None):
        self.settings = settings
        self.store = store
        self.storage = storage
        self.transport = transport
        self.codec = codec or PillowCodec(quality=settings.image_quality)
        self.firebase_app = firebase_app

        self.tokens = TokenDirectory(self)
        self.renderer = PayloadRenderer(default_locale=settings.default_locale, click_action=settings.click_action)
        self.dispatcher = NotificationDispatcher(self, tokens=self.tokens, renderer=self.renderer)
        self.router = EventRouter(self)
        self.media = MediaDerivativePipeline(self)
        self.reaper = ExpiryReaper(self)
        self.accounts = AccountService(self)

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "AppContext":
        """Build a context backed by Firestore, S3 and FCM"""
        from firebase_admin import firestore

        from .aws import S3Storage
        from .firebase import FcmTransport, FirestoreStore, initialize_firebase_app

        settings = settings or default_settings
        app = initialize_firebase_app(settings)
        ctx = cls(
            settings=settings,
            store=FirestoreStore(firestore.client(app)),
            storage=S3Storage(settings),
            transport=FcmTransport(app),
            firebase_app=app,
        )
        logger.info(f"Application context created for {settings.service_name} ({settings.environment})")
        return ctx

    def close(self) -> None:
        from .firebase import delete_firebase_app

        delete_firebase_app(self.firebase_app)
        self.firebase_app = None

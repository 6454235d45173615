import asyncio
import logging

import firebase_admin
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from ..errors import TransportError
from ..notifications.schemas import PushMessage

logger = logging.getLogger(__name__)


class FcmTransport:
    """Push transport over Firebase Cloud Messaging."""

    # Firebase error codes that indicate an invalid token
    INVALID_TOKEN_CODES = [
        "registration-token-not-registered",
        "invalid-registration-token",
        "NOT_FOUND",
        "UNREGISTERED",
    ]

    def __init__(self, app: firebase_admin.App = None):
        self.app = app

    def build_message(self, push: PushMessage) -> messaging.Message:
        channel = push.channel
        aps = messaging.Aps(
            sound=channel.sound,
            badge=channel.badge,
            category=channel.category,
            thread_id=channel.category,
        )
        return messaging.Message(
            token=push.token,
            notification=messaging.Notification(title=push.title, body=push.body),
            data=push.data,
            android=messaging.AndroidConfig(
                priority=channel.priority,
                notification=messaging.AndroidNotification(
                    channel_id=channel.android_channel_id,
                    sound=channel.sound,
                    priority=channel.priority if channel.priority == "high" else None,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=aps),
            ),
        )

    async def send(self, push: PushMessage) -> str:
        """
        Send a single push message.

        Args:
            push: The rendered message with its delivery token

        Returns:
            The FCM message id

        Raises:
            TransportError: If FCM rejects the message
        """
        message = self.build_message(push)
        try:
            return await asyncio.to_thread(messaging.send, message, False, self.app)
        except messaging.UnregisteredError as e:
            raise TransportError(str(e), code=e.code, unregistered=True) from e
        except FirebaseError as e:
            unregistered = e.code in self.INVALID_TOKEN_CODES
            raise TransportError(str(e), code=e.code, unregistered=unregistered) from e

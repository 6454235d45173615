import logging
from typing import Any, Callable, Dict, Optional, Tuple

from .locales import translate
from .schemas import ChannelHints, EventKind, RenderedPayload

logger = logging.getLogger(__name__)

MESSAGES_CHANNEL = ChannelHints(android_channel_id='messages', priority='high', sound='default', category='messages')
STORIES_CHANNEL = ChannelHints(android_channel_id='stories', priority='high', sound='default', category='stories')
LIKES_CHANNEL = ChannelHints(android_channel_id='likes', priority='normal', category='social')
SOCIAL_CHANNEL = ChannelHints(android_channel_id='general', priority='normal', category='social')
GENERAL_CHANNEL = ChannelHints(android_channel_id='general', priority='normal', category='general')


class PayloadRenderer:
    """
    Builds the title, body, data and delivery hints of a push notification.

    Pure: everything it needs arrives in ``context``. Recognized context keys are
    ``actor_id``, ``actor`` (the acting user's record), ``recipient`` (the
    recipient's record) plus per-kind ids and documents set by the router.
    """

    def __init__(self, default_locale: str = 'en', click_action: str = 'FLUTTER_NOTIFICATION_CLICK'):
        self.default_locale = default_locale
        self.click_action = click_action
        self._renderers: Dict[EventKind, Callable[[Dict[str, Any], str], Tuple[str, str, Dict[str, Any]]]] = {
            EventKind.NEW_MESSAGE: self._new_message,
            EventKind.STORY_REPLY: self._story_reply,
            EventKind.STORY_LIKE: self._story_like,
            EventKind.NEW_LIKE: self._new_like,
            EventKind.NEW_FOLLOWER: self._new_follower,
            EventKind.NEW_STORY: self._new_story,
            EventKind.PROFILE_VIEW: self._profile_view,
        }

    def render(self, kind: EventKind, context: Dict[str, Any]) -> RenderedPayload:
        """
        Render a notification payload.

        Args:
            kind: The event kind being notified
            context: Snapshot data gathered by the router

        Returns:
            RenderedPayload: title, body, string-valued data and channel hints
        """
        renderer = self._renderers.get(kind)
        if renderer is None:
            raise ValueError(f"No payload renderer for event kind {kind}")

        locale = self.locale_for(context.get('recipient'))
        title, body, data = renderer(context, locale)

        data = {'type': kind.value, **data, 'click_action': self.click_action}
        return RenderedPayload(
            title=title,
            body=body,
            data=stringify(data),
            channel=self.channel_for(kind, context),
        )

    def locale_for(self, recipient: Optional[Dict[str, Any]]) -> str:
        if recipient:
            return recipient.get('locale') or (recipient.get('settings') or {}).get('locale') or self.default_locale
        return self.default_locale

    def channel_for(self, kind: EventKind, context: Dict[str, Any]) -> ChannelHints:
        if kind == EventKind.NEW_MESSAGE:
            recipient = context.get('recipient') or {}
            badge = (recipient.get('unreadCount') or 0) + 1
            return MESSAGES_CHANNEL.model_copy(update={'badge': badge})
        if kind in (EventKind.STORY_REPLY, EventKind.STORY_LIKE, EventKind.NEW_STORY):
            return STORIES_CHANNEL.model_copy()
        if kind == EventKind.NEW_LIKE:
            return LIKES_CHANNEL.model_copy()
        if kind == EventKind.NEW_FOLLOWER:
            return SOCIAL_CHANNEL.model_copy()
        return GENERAL_CHANNEL.model_copy()

    def actor_name(self, context: Dict[str, Any]) -> Optional[str]:
        actor = context.get('actor') or {}
        return actor.get('name') or actor.get('displayName')

    def message_body(self, message: Dict[str, Any], locale: str) -> str:
        message_type = message.get('type') or ('text' if message.get('text') else None)
        if message_type == 'text':
            return message.get('text') or translate(locale, 'new_message')
        if message_type == 'voice':
            return translate(locale, 'voice_message')
        if message_type == 'image':
            return translate(locale, 'photo')
        return translate(locale, 'new_message')

    def _new_message(self, context, locale):
        message = context['message']
        actor = context.get('actor') or {}
        title = self.actor_name(context) or translate(locale, 'new_message')
        data = {
            'chatId': context['chat_id'],
            'senderId': context.get('actor_id'),
            'otherUserId': context.get('actor_id'),
            'otherUserName': self.actor_name(context) or '',
            'otherUserImageUrl': actor.get('profileImageUrl') or '',
        }
        return title, self.message_body(message, locale), data

    def _story_reply(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        reply = context.get('reply') or {}
        data = {
            'storyId': context['story_id'],
            'userId': context.get('owner_id'),
            'senderId': context.get('actor_id'),
        }
        return (
            translate(locale, 'story_reply_title', name=name),
            reply.get('text') or translate(locale, 'story_reply_body'),
            data,
        )

    def _story_like(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        data = {'storyId': context['story_id'], 'likerId': context.get('actor_id')}
        return translate(locale, 'story_like_title'), translate(locale, 'story_like_body', name=name), data

    def _new_like(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        data = {'postId': context['post_id'], 'likerId': context.get('actor_id')}
        return translate(locale, 'new_like_title'), translate(locale, 'new_like_body', name=name), data

    def _new_follower(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        data = {'followerId': context.get('actor_id')}
        return translate(locale, 'new_follower_title'), translate(locale, 'new_follower_body', name=name), data

    def _new_story(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        data = {'storyId': context['story_id'], 'userId': context.get('actor_id')}
        return translate(locale, 'new_story_title', name=name), translate(locale, 'new_story_body', name=name), data

    def _profile_view(self, context, locale):
        name = self.actor_name(context) or translate(locale, 'someone')
        data = {'viewerId': context.get('actor_id')}
        return translate(locale, 'profile_view_title'), translate(locale, 'profile_view_body', name=name), data


def stringify(data: Dict[str, Any]) -> Dict[str, str]:
    """FCM data payloads only carry strings"""
    return {k: '' if v is None else (v if isinstance(v, str) else str(v)) for k, v in data.items()}

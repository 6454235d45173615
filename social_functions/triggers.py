"""
Static registration table binding handlers to their triggers.
"""
import re
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from . import handlers
from .config import settings
from .notifications.schemas import EventKind


class TriggerType(str, Enum):
    DOCUMENT_CREATED = "document.created"
    DOCUMENT_UPDATED = "document.updated"
    OBJECT_FINALIZED = "object.finalized"
    SCHEDULE = "schedule"
    CALLABLE = "callable"


class TriggerDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: TriggerType
    handler: Callable[..., Awaitable]
    pattern: Optional[str] = None
    schedule: Optional[str] = None
    timezone: str = "UTC"
    kind: Optional[EventKind] = None


_PARAM = re.compile(r'^\{(\w+)\}$')


def match_path(pattern: str, path: str) -> Optional[Dict[str, str]]:
    """
    Match a document path against a pattern such as ``chats/{chatId}/messages/{messageId}``.

    Returns:
        The extracted parameters, or None if the path does not match
    """
    pattern_segments = pattern.strip('/').split('/')
    path_segments = path.strip('/').split('/')
    if len(pattern_segments) != len(path_segments):
        return None

    params = {}
    for expected, actual in zip(pattern_segments, path_segments):
        param = _PARAM.match(expected)
        if param:
            if not actual:
                return None
            params[param.group(1)] = actual
        elif expected != actual:
            return None
    return params


def _route(kind: EventKind) -> Callable[..., Awaitable]:
    async def handler(event, ctx):
        return await handlers.route_and_dispatch(kind, event, ctx)
    handler.__name__ = f"route_{kind.value}"
    return handler


TRIGGERS: List[TriggerDescriptor] = [
    TriggerDescriptor(name="onNewMessage", type=TriggerType.DOCUMENT_CREATED,
                      pattern="chats/{chatId}/messages/{messageId}",
                      handler=_route(EventKind.NEW_MESSAGE), kind=EventKind.NEW_MESSAGE),
    TriggerDescriptor(name="onStoryReply", type=TriggerType.DOCUMENT_CREATED,
                      pattern="stories/{storyId}/replies/{replyId}",
                      handler=_route(EventKind.STORY_REPLY), kind=EventKind.STORY_REPLY),
    TriggerDescriptor(name="onStoryLiked", type=TriggerType.DOCUMENT_UPDATED,
                      pattern="stories/{storyId}",
                      handler=_route(EventKind.STORY_LIKE), kind=EventKind.STORY_LIKE),
    TriggerDescriptor(name="onStoryCreated", type=TriggerType.DOCUMENT_CREATED,
                      pattern="stories/{storyId}",
                      handler=_route(EventKind.NEW_STORY), kind=EventKind.NEW_STORY),
    TriggerDescriptor(name="onNewLike", type=TriggerType.DOCUMENT_CREATED,
                      pattern="likes/{likeId}",
                      handler=_route(EventKind.NEW_LIKE), kind=EventKind.NEW_LIKE),
    TriggerDescriptor(name="onNewFollower", type=TriggerType.DOCUMENT_CREATED,
                      pattern="users/{userId}/followers/{followerId}",
                      handler=_route(EventKind.NEW_FOLLOWER), kind=EventKind.NEW_FOLLOWER),
    TriggerDescriptor(name="onProfileView", type=TriggerType.DOCUMENT_CREATED,
                      pattern="profile_views/{viewId}",
                      handler=_route(EventKind.PROFILE_VIEW), kind=EventKind.PROFILE_VIEW),
    TriggerDescriptor(name="onUserCreated", type=TriggerType.DOCUMENT_CREATED,
                      pattern="users/{userId}",
                      handler=handlers.on_user_created),
    TriggerDescriptor(name="optimizeImage", type=TriggerType.OBJECT_FINALIZED,
                      handler=handlers.optimize_image),
    TriggerDescriptor(name="cleanupExpiredStories", type=TriggerType.SCHEDULE,
                      schedule=settings.story_cleanup_schedule, timezone=settings.story_cleanup_timezone,
                      handler=handlers.cleanup_expired_stories),
    TriggerDescriptor(name="cleanupExpiredTokens", type=TriggerType.SCHEDULE,
                      schedule=settings.token_cleanup_schedule, timezone=settings.token_cleanup_timezone,
                      handler=handlers.cleanup_expired_tokens),
    TriggerDescriptor(name="updateUserMetrics", type=TriggerType.CALLABLE,
                      handler=handlers.update_user_metrics),
]


def document_triggers(trigger_type: TriggerType, path: str):
    """Yield (descriptor, params) for every document trigger matching the path"""
    for descriptor in TRIGGERS:
        if descriptor.type != trigger_type or descriptor.pattern is None:
            continue
        params = match_path(descriptor.pattern, path)
        if params is not None:
            yield descriptor, params


def triggers_of_type(trigger_type: TriggerType) -> List[TriggerDescriptor]:
    return [descriptor for descriptor in TRIGGERS if descriptor.type == trigger_type]


def get_trigger(name: str) -> Optional[TriggerDescriptor]:
    return next((descriptor for descriptor in TRIGGERS if descriptor.name == name), None)

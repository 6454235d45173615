from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..schemas import OutcomeReason


class EventKind(str, Enum):
    NEW_MESSAGE = "new_message"
    STORY_REPLY = "story_reply"
    STORY_LIKE = "story_like"
    NEW_LIKE = "new_like"
    NEW_FOLLOWER = "new_follower"
    NEW_STORY = "new_story"
    PROFILE_VIEW = "profile_view"


class DomainEvent(BaseModel):
    """A notification-worthy write, as seen by the router"""
    kind: EventKind
    document_id: str
    params: Dict[str, str] = Field(default_factory=dict)
    document: Dict[str, Any] = Field(default_factory=dict)
    previous: Optional[Dict[str, Any]] = None


class DispatchInstruction(BaseModel):
    """Who to notify, about what, with the context needed to render it"""
    kind: EventKind
    recipient_id: str
    actor_id: Optional[str] = None
    recipient: Optional[Dict[str, Any]] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class ChannelHints(BaseModel):
    """Platform-specific delivery hints"""
    android_channel_id: str = "general"
    priority: str = "normal"
    sound: Optional[str] = None
    category: str = "social"
    badge: Optional[int] = None


class RenderedPayload(BaseModel):
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    channel: ChannelHints = Field(default_factory=ChannelHints)


class PushMessage(BaseModel):
    token: str
    title: str
    body: str
    data: Dict[str, str] = Field(default_factory=dict)
    channel: ChannelHints = Field(default_factory=ChannelHints)


class DispatchResult(BaseModel):
    recipient_id: str
    delivered: bool
    reason: Optional[OutcomeReason] = None
    message_id: Optional[str] = None


class DispatchTally(BaseModel):
    sent: int = 0
    total: int = 0
    results: List[DispatchResult] = Field(default_factory=list)

    def summary(self) -> str:
        return f"{self.sent}/{self.total}"

import logging
from typing import Any, Dict, Optional

from google.cloud import firestore
from pydantic import BaseModel, ValidationError, field_validator

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

METRIC_FIELDS = {
    'message': 'messageCount',
    'story': 'storyCount',
    'profileView': 'profileViewCount',
}

DEFAULT_COUNTERS = ('messageCount', 'storyCount', 'profileViewCount', 'activeStoryCount', 'friendCount')


class MetricsRequest(BaseModel):
    userId: str
    metricType: str
    incrementBy: int = 1

    @field_validator('userId', 'metricType')
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class AccountService:
    """User record initialization and activity metrics."""

    def __init__(self, ctx):
        self.store = ctx.store
        self.app_name = ctx.settings.app_name

    async def initialize_user(self, user_id: str, user_data: Optional[Dict[str, Any]] = None) -> None:
        """
        Set default counters on a newly created user and post the welcome
        notification.

        Args:
            user_id: The new user's ID
            user_data: The user document as created by the client
        """
        user_data = user_data or {}
        logger.info(f"Initializing new user {user_id}")

        defaults: Dict[str, Any] = {field: 0 for field in DEFAULT_COUNTERS}
        defaults['createdAt'] = user_data.get('createdAt') or firestore.SERVER_TIMESTAMP
        defaults['lastActiveAt'] = firestore.SERVER_TIMESTAMP
        await self.store.update(f"users/{user_id}", defaults)

        await self.store.add('notifications', {
            'userId': user_id,
            'type': 'welcome',
            'title': f"Welcome to {self.app_name}!",
            'body': "Start connecting with people who share your interests.",
            'read': False,
            'createdAt': firestore.SERVER_TIMESTAMP,
        })
        logger.info(f"User {user_id} initialized successfully")

    async def update_metrics(self, payload: Dict[str, Any]) -> Dict[str, bool]:
        """
        Increment one activity counter for a user.

        Args:
            payload: ``{"userId", "metricType", "incrementBy"?}`` from the caller

        Returns:
            ``{"success": True}``

        Raises:
            InvalidInputError: If the payload is malformed or the metric unknown
        """
        if not isinstance(payload, dict) or not payload.get('userId') or not payload.get('metricType'):
            raise InvalidInputError("userId and metricType are required")

        try:
            request = MetricsRequest(**payload)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid metrics request: {e.errors()[0]['msg']}") from e

        field = METRIC_FIELDS.get(request.metricType)
        if field is None:
            raise InvalidInputError(f"Unknown metric type: {request.metricType}")

        await self.store.update(f"users/{request.userId}", {
            'lastActiveAt': firestore.SERVER_TIMESTAMP,
            field: firestore.Increment(request.incrementBy),
        })
        logger.info(f"Updated {request.metricType} metric for user {request.userId}")
        return {'success': True}

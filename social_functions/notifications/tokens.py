import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from google.cloud import firestore

from ..time_utils import to_datetime, utcnow

logger = logging.getLogger(__name__)

TOKEN_FIELD = 'fcmToken'
TOKEN_UPDATED_FIELD = 'fcmTokenUpdatedAt'


class TokenDirectory:
    """Resolves users to their current push delivery token."""

    def __init__(self, ctx):
        self.store = ctx.store
        self.ttl_days = ctx.settings.token_ttl_days
        self.sweep_limit = ctx.settings.token_sweep_limit

    async def lookup(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the user's record, or None if the user does not exist"""
        if not user_id:
            return None
        user = await self.store.get(f"users/{user_id}")
        return user.data if user else None

    def extract(self, user_data: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> Optional[str]:
        """
        Pick the delivery token out of a user record.

        Tokens not refreshed within the TTL are treated as absent. The record is
        left untouched; the scheduled sweep clears it.
        """
        if not user_data:
            return None
        token = user_data.get(TOKEN_FIELD)
        if not token:
            return None

        updated_at = to_datetime(user_data.get(TOKEN_UPDATED_FIELD))
        if updated_at is not None and self.ttl_days:
            cutoff = (now or utcnow()) - timedelta(days=self.ttl_days)
            if updated_at < cutoff:
                logger.info(f"Ignoring stale token last refreshed at {updated_at.isoformat()}")
                return None
        return token

    async def resolve(self, user_id: str) -> Optional[str]:
        """
        Resolve a user id to a delivery token.

        Returns:
            The token, or None when the user is missing or has no usable token
        """
        user_data = await self.lookup(user_id)
        if user_data is None:
            logger.info(f"User {user_id} does not exist, no token")
            return None
        return self.extract(user_data)

    async def invalidate(self, user_id: str) -> None:
        """Clear a token the push transport reported as unregistered"""
        await self.store.update(f"users/{user_id}", {
            TOKEN_FIELD: firestore.DELETE_FIELD,
            TOKEN_UPDATED_FIELD: firestore.DELETE_FIELD,
        })
        logger.info(f"Removed invalid token for user {user_id}")

    async def sweep_expired(self, older_than_days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        """
        Clear tokens last refreshed before the cutoff in one batched write.

        At most ``token_sweep_limit`` users are cleared per run; the rest wait
        for the next run.

        Args:
            older_than_days: Token age limit, defaults to the configured TTL
            now: Reference time, defaults to the current time

        Returns:
            int: Number of users whose token was cleared
        """
        days = older_than_days if older_than_days is not None else self.ttl_days
        cutoff = (now or utcnow()) - timedelta(days=days)

        expired = await self.store.query('users', [(TOKEN_UPDATED_FIELD, '<', cutoff)], limit=self.sweep_limit)
        if not expired:
            logger.info("No expired FCM tokens found")
            return 0

        updates = [
            (doc.path, {TOKEN_FIELD: firestore.DELETE_FIELD, TOKEN_UPDATED_FIELD: firestore.DELETE_FIELD})
            for doc in expired
        ]
        await self.store.commit_batch(updates=updates)
        logger.info(f"Cleaned up {len(updates)} expired FCM tokens")
        return len(updates)

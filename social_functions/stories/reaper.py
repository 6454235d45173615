import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from google.cloud import firestore
from pydantic import BaseModel

from ..media.pipeline import derivative_paths, is_derivative_path
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


class SweepResult(BaseModel):
    deleted: int = 0
    media_deleted: int = 0
    media_failed: int = 0


class ExpiryReaper:
    """
    Deletes expired stories.

    Story documents and their owners' ``activeStoryCount`` contributions are
    removed in one atomic batch. Media objects (the original upload and its
    derivatives) are deleted afterwards, one at a time; a failed media delete
    leaves an orphaned object and nothing else.
    """

    def __init__(self, ctx):
        self.store = ctx.store
        self.storage = ctx.storage
        self.ttl = timedelta(hours=ctx.settings.story_ttl_hours)
        # One delete per story plus at most one counter update per owner
        self.batch_limit = ctx.settings.story_sweep_limit

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Remove stories created more than the TTL before ``now``.

        At most ``story_sweep_limit`` stories go per run so the batch stays
        within Firestore's write cap; the next run picks up the rest.

        Args:
            now: Reference time, defaults to the current time

        Returns:
            SweepResult: number of stories and media objects deleted
        """
        cutoff = (now or utcnow()) - self.ttl
        logger.info(f"Starting expired stories cleanup (cutoff {cutoff.isoformat()})")

        expired = await self.store.query('stories', [('createdAt', '<', cutoff)], limit=self.batch_limit)
        if not expired:
            logger.info("No expired stories found")
            return SweepResult()

        logger.info(f"Found {len(expired)} expired stories")

        per_owner = Counter(doc.data.get('userId') for doc in expired if doc.data.get('userId'))
        existing_owners = await self._existing_users(list(per_owner))
        for user_id in per_owner.keys() - existing_owners:
            logger.warning(f"Owner {user_id} no longer exists, skipping activeStoryCount update")

        media_keys: List[str] = []
        for doc in expired:
            media_keys.extend(self._media_keys(doc.data))

        await self.store.commit_batch(
            deletes=[doc.path for doc in expired],
            updates=[
                (f"users/{user_id}", {'activeStoryCount': firestore.Increment(-count)})
                for user_id, count in per_owner.items()
                if user_id in existing_owners
            ],
        )
        logger.info(f"Deleted {len(expired)} expired stories")

        result = SweepResult(deleted=len(expired))
        for key in media_keys:
            if await self.storage.delete_object(key):
                result.media_deleted += 1
            else:
                logger.warning(f"Failed to delete media file: {key}")
                result.media_failed += 1

        return result

    async def _existing_users(self, user_ids: List[str]) -> set:
        users = await asyncio.gather(*(self.store.get(f"users/{user_id}") for user_id in user_ids))
        return {user_id for user_id, user in zip(user_ids, users) if user is not None}

    def _media_keys(self, story: dict) -> List[str]:
        key = story.get('mediaPath') or self.storage.key_from_url(story.get('mediaUrl'))
        if not key:
            return []
        if is_derivative_path(key):
            return [key]
        return [key, *derivative_paths(key)]

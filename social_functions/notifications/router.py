import asyncio
import logging
from typing import Any, Dict, List, Optional

from google.cloud import firestore

from ..errors import StoreError
from .locales import translate
from .schemas import DispatchInstruction, DomainEvent, EventKind

logger = logging.getLogger(__name__)


class EventRouter:
    """
    Maps a domain event to the dispatch instructions it calls for.

    Reads recipient and context data from the document store. The only writes
    are the new-message chat metadata side effects, all field-level increments.
    """

    def __init__(self, ctx):
        self.store = ctx.store
        self.default_locale = ctx.settings.default_locale
        self._routes = {
            EventKind.NEW_MESSAGE: self._route_new_message,
            EventKind.STORY_REPLY: self._route_story_reply,
            EventKind.STORY_LIKE: self._route_story_like,
            EventKind.NEW_LIKE: self._route_new_like,
            EventKind.NEW_FOLLOWER: self._route_new_follower,
            EventKind.NEW_STORY: self._route_new_story,
            EventKind.PROFILE_VIEW: self._route_profile_view,
        }

    async def route(self, event: DomainEvent) -> List[DispatchInstruction]:
        """
        Route an event.

        Args:
            event: The domain event with its changed document(s)

        Returns:
            List[DispatchInstruction]: Zero or more instructions; empty when the
            event is not notification-worthy (missing documents, self actions,
            disabled preferences)
        """
        route = self._routes.get(event.kind)
        if route is None:
            logger.warning(f"Unknown event kind: {event.kind}")
            return []
        return await route(event)

    async def _get_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        user = await self.store.get(f"users/{user_id}")
        return user.data if user else None

    async def _route_new_message(self, event: DomainEvent) -> List[DispatchInstruction]:
        chat_id = event.params.get('chatId')
        message = event.document
        sender_id = message.get('senderId')

        chat = await self.store.get(f"chats/{chat_id}")
        if chat is None:
            logger.warning(f"Chat {chat_id} does not exist")
            return []

        participants = chat.data.get('participants') or []
        recipient_id = next((p for p in participants if p != sender_id), None)
        if not recipient_id:
            logger.info(f"No recipient found in chat {chat_id} for sender {sender_id}")
            return []

        # Snapshots are taken before the counters move so the badge reflects the
        # unread count at the time of this message
        sender, recipient = await asyncio.gather(
            self._get_user(sender_id),
            self._get_user(recipient_id),
            return_exceptions=True,
        )
        # A failed profile read must not block the metadata update or the push;
        # the dispatcher re-reads the recipient when no snapshot is attached
        if isinstance(sender, Exception):
            logger.error(f"Error reading sender {sender_id}: {str(sender)}")
            sender = None
        if isinstance(recipient, Exception):
            logger.error(f"Error reading recipient {recipient_id}: {str(recipient)}")
            recipient = None

        await asyncio.gather(
            self._update_chat_metadata(chat_id, recipient_id, message, recipient),
            self._increment_user_unread(recipient_id, recipient),
        )

        return [DispatchInstruction(
            kind=EventKind.NEW_MESSAGE,
            recipient_id=recipient_id,
            actor_id=sender_id,
            recipient=recipient,
            context={
                'chat_id': chat_id,
                'message_id': event.document_id,
                'message': message,
                'actor': sender,
            },
        )]

    async def _update_chat_metadata(self,
                                    chat_id: str,
                                    recipient_id: str,
                                    message: Dict[str, Any],
                                    recipient: Optional[Dict[str, Any]]) -> bool:
        locale = (recipient or {}).get('locale') or self.default_locale
        update_data = {
            'lastMessage': message.get('text') or translate(locale, 'media'),
            'lastMessageTime': message.get('timestamp') or firestore.SERVER_TIMESTAMP,
            'updatedAt': firestore.SERVER_TIMESTAMP,
            f'unreadCount.{recipient_id}': firestore.Increment(1),
        }
        try:
            await self.store.update(f"chats/{chat_id}", update_data)
            logger.info(f"Updated chat {chat_id} metadata successfully")
            return True
        except StoreError as e:
            logger.error(f"Error updating chat metadata for {chat_id}: {str(e)}")
            return False

    async def _increment_user_unread(self, recipient_id: str, recipient: Optional[Dict[str, Any]]) -> bool:
        if recipient is None:
            return False
        try:
            await self.store.update(f"users/{recipient_id}", {'unreadCount': firestore.Increment(1)})
            return True
        except StoreError as e:
            logger.error(f"Error incrementing unread count for user {recipient_id}: {str(e)}")
            return False

    async def _route_story_reply(self, event: DomainEvent) -> List[DispatchInstruction]:
        story_id = event.params.get('storyId')
        reply = event.document
        replier_id = reply.get('senderId')

        story = await self.store.get(f"stories/{story_id}")
        if story is None:
            logger.info(f"Story not found: {story_id}")
            return []

        owner_id = story.data.get('userId')
        if self._is_self_action(replier_id, owner_id, 'replied to own story'):
            return []

        replier, owner = await asyncio.gather(self._get_user(replier_id), self._get_user(owner_id))
        return [DispatchInstruction(
            kind=EventKind.STORY_REPLY,
            recipient_id=owner_id,
            actor_id=replier_id,
            recipient=owner,
            context={'story_id': story_id, 'owner_id': owner_id, 'reply': reply, 'actor': replier},
        )]

    async def _route_story_like(self, event: DomainEvent) -> List[DispatchInstruction]:
        story_id = event.params.get('storyId') or event.document_id
        before = (event.previous or {}).get('likedBy') or []
        after = event.document.get('likedBy') or []

        # Only the first newly added liker is notified
        previous_likers = set(before)
        liker_id = next((user_id for user_id in after if user_id not in previous_likers), None)
        if liker_id is None:
            return []

        owner_id = event.document.get('userId')
        if self._is_self_action(liker_id, owner_id, 'liked own story'):
            return []

        liker, owner = await asyncio.gather(self._get_user(liker_id), self._get_user(owner_id))
        return [DispatchInstruction(
            kind=EventKind.STORY_LIKE,
            recipient_id=owner_id,
            actor_id=liker_id,
            recipient=owner,
            context={'story_id': story_id, 'owner_id': owner_id, 'actor': liker},
        )]

    async def _route_new_like(self, event: DomainEvent) -> List[DispatchInstruction]:
        like = event.document
        post_id = like.get('postId')
        liker_id = like.get('userId')

        post = await self.store.get(f"posts/{post_id}") if post_id else None
        if post is None:
            logger.info(f"Post not found: {post_id}")
            return []

        owner_id = post.data.get('userId')
        if self._is_self_action(liker_id, owner_id, 'liked own post'):
            return []

        liker, owner = await asyncio.gather(self._get_user(liker_id), self._get_user(owner_id))
        return [DispatchInstruction(
            kind=EventKind.NEW_LIKE,
            recipient_id=owner_id,
            actor_id=liker_id,
            recipient=owner,
            context={'post_id': post_id, 'actor': liker},
        )]

    async def _route_new_follower(self, event: DomainEvent) -> List[DispatchInstruction]:
        owner_id = event.params.get('userId')
        follower_id = event.document.get('followerId') or event.params.get('followerId') or event.document_id

        if self._is_self_action(follower_id, owner_id, 'followed themselves'):
            return []

        follower, owner = await asyncio.gather(self._get_user(follower_id), self._get_user(owner_id))
        if owner is None:
            logger.info(f"Followed user not found: {owner_id}")
            return []

        return [DispatchInstruction(
            kind=EventKind.NEW_FOLLOWER,
            recipient_id=owner_id,
            actor_id=follower_id,
            recipient=owner,
            context={'actor': follower},
        )]

    async def _route_new_story(self, event: DomainEvent) -> List[DispatchInstruction]:
        story_id = event.params.get('storyId') or event.document_id
        owner_id = event.document.get('userId')
        if not owner_id:
            logger.warning(f"Story {story_id} has no owner")
            return []

        owner, followers = await asyncio.gather(
            self._get_user(owner_id),
            self.store.query(f"users/{owner_id}/followers"),
        )

        instructions = []
        for follower in followers:
            follower_id = follower.data.get('followerId') or follower.id
            if follower_id == owner_id:
                continue
            instructions.append(DispatchInstruction(
                kind=EventKind.NEW_STORY,
                recipient_id=follower_id,
                actor_id=owner_id,
                context={'story_id': story_id, 'owner_id': owner_id, 'actor': owner},
            ))

        logger.info(f"Story {story_id} broadcast to {len(instructions)} followers of {owner_id}")
        return instructions

    async def _route_profile_view(self, event: DomainEvent) -> List[DispatchInstruction]:
        view = event.document
        viewer_id = view.get('viewerId')
        owner_id = view.get('profileUserId')

        if self._is_self_action(viewer_id, owner_id, 'viewed own profile'):
            return []

        owner = await self._get_user(owner_id)
        if owner is None:
            logger.info(f"Profile owner not found: {owner_id}")
            return []

        if not (owner.get('settings') or {}).get('notifyOnProfileView'):
            logger.info("Profile view notifications disabled for user")
            return []

        viewer = await self._get_user(viewer_id)
        return [DispatchInstruction(
            kind=EventKind.PROFILE_VIEW,
            recipient_id=owner_id,
            actor_id=viewer_id,
            recipient=owner,
            context={'actor': viewer},
        )]

    @staticmethod
    def _is_self_action(actor_id: Optional[str], owner_id: Optional[str], description: str) -> bool:
        if not owner_id:
            logger.info("Target has no owner, nothing to notify")
            return True
        if actor_id == owner_id:
            logger.info(f"User {actor_id} {description}, no notification")
            return True
        return False

import pytest

from social_functions.notifications.schemas import DomainEvent, EventKind


def new_message_event(text="hi", sender="u1", message_type="text"):
    return DomainEvent(
        kind=EventKind.NEW_MESSAGE,
        document_id="m1",
        params={"chatId": "c1", "messageId": "m1"},
        document={"senderId": sender, "text": text, "type": message_type},
    )


@pytest.fixture
def chat(store):
    store.seed("chats/c1", {"participants": ["u1", "u2"], "unreadCount": {"u2": 2}})
    store.seed("users/u1", {"name": "Alice"})
    store.seed("users/u2", {"name": "Bob", "fcmToken": "tok-u2", "unreadCount": 3})


@pytest.mark.asyncio
async def test_new_message_targets_other_participant(ctx, store, chat):
    instructions = await ctx.router.route(new_message_event())

    assert len(instructions) == 1
    instruction = instructions[0]
    assert instruction.recipient_id == "u2"
    assert instruction.actor_id == "u1"
    assert instruction.context["chat_id"] == "c1"
    assert instruction.context["actor"]["name"] == "Alice"
    # Snapshot taken before the counters moved
    assert instruction.recipient["unreadCount"] == 3

    chat_doc = store.data("chats/c1")
    assert chat_doc["lastMessage"] == "hi"
    assert chat_doc["unreadCount"] == {"u2": 3}
    assert store.data("users/u2")["unreadCount"] == 4


@pytest.mark.asyncio
async def test_new_message_without_text_uses_media_placeholder(ctx, store, chat):
    await ctx.router.route(new_message_event(text=None, message_type="image"))

    assert store.data("chats/c1")["lastMessage"] == "[Media]"


@pytest.mark.asyncio
async def test_new_message_missing_chat(ctx, store):
    assert await ctx.router.route(new_message_event()) == []


@pytest.mark.asyncio
async def test_new_message_recipient_read_failure_still_routes(ctx, store, chat):
    store.fail_paths.add("users/u2")

    instructions = await ctx.router.route(new_message_event())

    assert [i.recipient_id for i in instructions] == ["u2"]
    assert instructions[0].recipient is None
    assert store.data("chats/c1")["lastMessage"] == "hi"


@pytest.mark.asyncio
async def test_story_reply_notifies_owner(ctx, store):
    store.seed("stories/s1", {"userId": "owner"})
    store.seed("users/owner", {"fcmToken": "tok"})
    store.seed("users/fan", {"name": "Fan"})
    event = DomainEvent(
        kind=EventKind.STORY_REPLY,
        document_id="r1",
        params={"storyId": "s1", "replyId": "r1"},
        document={"senderId": "fan", "text": "nice"},
    )

    instructions = await ctx.router.route(event)

    assert len(instructions) == 1
    assert instructions[0].recipient_id == "owner"


@pytest.mark.asyncio
async def test_story_like_by_owner_is_ignored(ctx, store):
    store.seed("users/owner", {"fcmToken": "tok"})
    event = DomainEvent(
        kind=EventKind.STORY_LIKE,
        document_id="s1",
        params={"storyId": "s1"},
        previous={"userId": "owner", "likedBy": ["a"]},
        document={"userId": "owner", "likedBy": ["a", "owner"]},
    )

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_story_like_by_owner_first_suppresses_later_likers(ctx, store):
    store.seed("users/owner", {"fcmToken": "tok"})
    event = DomainEvent(
        kind=EventKind.STORY_LIKE,
        document_id="s1",
        params={"storyId": "s1"},
        previous={"userId": "owner", "likedBy": []},
        document={"userId": "owner", "likedBy": ["owner", "b"]},
    )

    assert await ctx.router.route(event) == []
    assert instructions[0].context["story_id"] == "s1"
    assert instructions[0].context["reply"]["text"] == "nice"


@pytest.mark.asyncio
async def test_story_reply_to_own_story_is_ignored(ctx, store):
    store.seed("stories/s1", {"userId": "owner"})
    event = DomainEvent(
        kind=EventKind.STORY_REPLY,
        document_id="r1",
        params={"storyId": "s1"},
        document={"senderId": "owner", "text": "me"},
    )

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_story_like_notifies_for_new_liker_only(ctx, store):
    store.seed("users/owner", {"fcmToken": "tok"})
    event = DomainEvent(
        kind=EventKind.STORY_LIKE,
        document_id="s1",
        params={"storyId": "s1"},
        previous={"userId": "owner", "likedBy": ["a"]},
        document={"userId": "owner", "likedBy": ["a", "b", "c"]},
    )

    instructions = await ctx.router.route(event)

    assert len(instructions) == 1
    assert instructions[0].actor_id == "b"
    assert instructions[0].recipient_id == "owner"


@pytest.mark.asyncio
async def test_story_update_without_new_likes_is_ignored(ctx):
    event = DomainEvent(
        kind=EventKind.STORY_LIKE,
        document_id="s1",
        params={"storyId": "s1"},
        previous={"userId": "owner", "likedBy": ["a", "b"]},
        document={"userId": "owner", "likedBy": ["a"]},
    )

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_new_like_on_missing_post_is_ignored(ctx):
    event = DomainEvent(kind=EventKind.NEW_LIKE, document_id="l1", document={"postId": "p1", "userId": "a"})

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_new_like_on_own_post_is_ignored(ctx, store):
    store.seed("posts/p1", {"userId": "a"})
    event = DomainEvent(kind=EventKind.NEW_LIKE, document_id="l1", document={"postId": "p1", "userId": "a"})

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_new_like_notifies_post_owner(ctx, store):
    store.seed("posts/p1", {"userId": "owner"})
    event = DomainEvent(kind=EventKind.NEW_LIKE, document_id="l1", document={"postId": "p1", "userId": "a"})

    instructions = await ctx.router.route(event)

    assert instructions[0].recipient_id == "owner"
    assert instructions[0].context["post_id"] == "p1"


@pytest.mark.asyncio
async def test_new_follower(ctx, store):
    store.seed("users/u1", {"fcmToken": "tok"})
    store.seed("users/u2", {"name": "Follower"})
    event = DomainEvent(
        kind=EventKind.NEW_FOLLOWER,
        document_id="u2",
        params={"userId": "u1", "followerId": "u2"},
        document={"followedAt": "now"},
    )

    instructions = await ctx.router.route(event)

    assert len(instructions) == 1
    assert instructions[0].actor_id == "u2"
    assert instructions[0].context["actor"]["name"] == "Follower"


@pytest.mark.asyncio
async def test_self_follow_is_ignored(ctx, store):
    store.seed("users/u1", {"fcmToken": "tok"})
    event = DomainEvent(
        kind=EventKind.NEW_FOLLOWER,
        document_id="u1",
        params={"userId": "u1", "followerId": "u1"},
    )

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_new_story_broadcasts_to_followers(ctx, store):
    store.seed("users/owner", {"name": "Owner"})
    store.seed("users/owner/followers/f1", {})
    store.seed("users/owner/followers/f2", {"followerId": "f2"})
    store.seed("users/owner/followers/owner", {})
    store.seed("users/other/followers/f3", {})
    event = DomainEvent(kind=EventKind.NEW_STORY, document_id="s1", params={"storyId": "s1"},
                        document={"userId": "owner"})

    instructions = await ctx.router.route(event)

    assert sorted(i.recipient_id for i in instructions) == ["f1", "f2"]
    assert all(i.actor_id == "owner" for i in instructions)
    assert all(i.context["story_id"] == "s1" for i in instructions)


@pytest.mark.asyncio
async def test_new_story_without_followers(ctx, store):
    store.seed("users/owner", {"name": "Owner"})
    event = DomainEvent(kind=EventKind.NEW_STORY, document_id="s1", document={"userId": "owner"})

    assert await ctx.router.route(event) == []


@pytest.mark.asyncio
async def test_profile_view_requires_opt_in(ctx, store):
    store.seed("users/owner", {"fcmToken": "tok", "settings": {"notifyOnProfileView": False}})
    event = DomainEvent(kind=EventKind.PROFILE_VIEW, document_id="v1",
                        document={"viewerId": "viewer", "profileUserId": "owner"})

    assert await ctx.router.route(event) == []

    store.seed("users/owner", {"fcmToken": "tok", "settings": {"notifyOnProfileView": True}})
    instructions = await ctx.router.route(event)
    assert [i.recipient_id for i in instructions] == ["owner"]


@pytest.mark.asyncio
async def test_viewing_own_profile_is_ignored(ctx, store):
    store.seed("users/owner", {"settings": {"notifyOnProfileView": True}})
    event = DomainEvent(kind=EventKind.PROFILE_VIEW, document_id="v1",
                        document={"viewerId": "owner", "profileUserId": "owner"})

    assert await ctx.router.route(event) == []

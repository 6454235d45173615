import pytest
from botocore.stub import Stubber
from firebase_admin import exceptions, messaging

from social_functions.aws import S3Storage, object_key_from_url
from social_functions.errors import TransportError
from social_functions.firebase import FcmTransport
from social_functions.notifications.renderer import MESSAGES_CHANNEL
from social_functions.notifications.schemas import PushMessage


@pytest.mark.parametrize("reference, expected", [
    ("stories/u1/a.jpg", "stories/u1/a.jpg"),
    ("https://social-connect-media.s3.amazonaws.com/stories/u1/a.jpg?X-Amz-Signature=x", "stories/u1/a.jpg"),
    ("https://s3.amazonaws.com/social-connect-media/stories/u1/a.jpg", "stories/u1/a.jpg"),
    ("https://firebasestorage.googleapis.com/v0/b/app/o/stories%2Fu1%2Fa.jpg?alt=media", "stories/u1/a.jpg"),
    ("", None),
    (None, None),
])
def test_object_key_from_url(reference, expected):
    assert object_key_from_url(reference, "social-connect-media") == expected


@pytest.fixture
def s3(settings):
    settings = settings.model_copy(update={"aws_access_key_id": "test", "aws_secret_access_key": "test"})
    return S3Storage(settings)


def test_generate_read_url(s3):
    url = s3.generate_read_url("profiles/u1/avatar_optimized.webp")

    assert "profiles/u1/avatar_optimized.webp" in url
    assert "social-connect-media" in url


def test_public_url_defaults_to_media_route(s3):
    url = s3.public_url("stories/u1/pic_optimized.webp")

    assert url == "http://localhost:8080/media/stories/u1/pic_optimized.webp"
    assert s3.key_from_url(url) == "stories/u1/pic_optimized.webp"


def test_public_url_uses_cdn_base(settings):
    settings = settings.model_copy(update={
        "aws_access_key_id": "test",
        "aws_secret_access_key": "test",
        "media_base_url": "https://cdn.example.com/",
    })
    s3 = S3Storage(settings)

    url = s3.public_url("chats/c1/my photo.jpg")

    assert url == "https://cdn.example.com/chats/c1/my%20photo.jpg"
    assert s3.key_from_url(url) == "chats/c1/my photo.jpg"


def test_key_from_url_accepts_s3_urls(s3):
    url = "https://social-connect-media.s3.amazonaws.com/stories/u1/a.jpg?X-Amz-Signature=abc"

    assert s3.key_from_url(url) == "stories/u1/a.jpg"
    assert s3.key_from_url(None) is None


@pytest.mark.asyncio
async def test_delete_object_reports_failure(s3):
    with Stubber(s3.s3) as stubber:
        stubber.add_client_error('delete_object', service_error_code='AccessDenied', http_status_code=403)
        assert await s3.delete_object("stories/u1/a.jpg") is False

    with Stubber(s3.s3) as stubber:
        stubber.add_response('delete_object', {}, {'Bucket': 'social-connect-media', 'Key': 'stories/u1/a.jpg'})
        assert await s3.delete_object("stories/u1/a.jpg") is True


def push():
    channel = MESSAGES_CHANNEL.model_copy(update={'badge': 3})
    return PushMessage(token="tok", title="Alice", body="hi", data={"type": "new_message"}, channel=channel)


def test_build_message():
    message = FcmTransport().build_message(push())

    assert message.token == "tok"
    assert message.notification.title == "Alice"
    assert message.data == {"type": "new_message"}
    assert message.android.priority == "high"
    assert message.android.notification.channel_id == "messages"
    assert message.apns.payload.aps.badge == 3
    assert message.apns.payload.aps.category == "messages"


@pytest.mark.asyncio
async def test_send_maps_unregistered_token(monkeypatch):
    def rejected(message, dry_run=False, app=None):
        raise messaging.UnregisteredError("Requested entity was not found.")

    monkeypatch.setattr(messaging, "send", rejected)

    with pytest.raises(TransportError) as exc_info:
        await FcmTransport().send(push())

    assert exc_info.value.unregistered


@pytest.mark.asyncio
async def test_send_maps_other_firebase_errors(monkeypatch):
    def unavailable(message, dry_run=False, app=None):
        raise exceptions.UnavailableError("Service unavailable")

    monkeypatch.setattr(messaging, "send", unavailable)

    with pytest.raises(TransportError) as exc_info:
        await FcmTransport().send(push())

    assert not exc_info.value.unregistered
    assert exc_info.value.code == exceptions.UNAVAILABLE


@pytest.mark.asyncio
async def test_send_returns_message_id(monkeypatch):
    monkeypatch.setattr(messaging, "send", lambda message, dry_run=False, app=None: "projects/p/messages/1")

    assert await FcmTransport().send(push()) == "projects/p/messages/1"

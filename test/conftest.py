import copy
import io
import os
import sys
from datetime import datetime, timezone

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from google.cloud import firestore
from PIL import Image

from social_functions.aws import object_key_from_url
from social_functions.config import Settings
from social_functions.context import AppContext
from social_functions.errors import StorageError, StoreError, TransportError
from social_functions.schemas import StoredDocument


class FakeStore:
    """In-memory document store applying Firestore write transforms."""

    def __init__(self):
        self.docs = {}
        self.fail_paths = set()
        self.batches = []
        self._next_id = 0

    def seed(self, path, data):
        self.docs[path] = copy.deepcopy(data)

    def data(self, path):
        return self.docs.get(path)

    def collection(self, collection):
        depth = collection.count('/') + 2
        return {
            path: data for path, data in self.docs.items()
            if path.startswith(f"{collection}/") and path.count('/') + 1 == depth
        }

    def _check(self, path):
        if path in self.fail_paths:
            raise StoreError(f"Failed to access {path}")

    async def get(self, path):
        self._check(path)
        if path not in self.docs:
            return None
        return StoredDocument(id=path.split('/')[-1], path=path, data=copy.deepcopy(self.docs[path]))

    async def query(self, collection, filters=(), limit=None):
        self._check(collection)
        results = []
        for path, data in sorted(self.collection(collection).items()):
            if all(_matches(data, f) for f in filters):
                results.append(StoredDocument(id=path.split('/')[-1], path=path, data=copy.deepcopy(data)))
        return results[:limit] if limit is not None else results

    async def update(self, path, fields):
        self._check(path)
        if path not in self.docs:
            raise StoreError(f"Failed to update {path}")
        _apply(self.docs[path], fields)

    async def set(self, path, data, merge=False):
        self._check(path)
        if not merge or path not in self.docs:
            self.docs[path] = {}
        _apply(self.docs[path], data)

    async def add(self, collection, data):
        self._check(collection)
        self._next_id += 1
        doc_id = f"auto{self._next_id}"
        self.docs[f"{collection}/{doc_id}"] = {}
        _apply(self.docs[f"{collection}/{doc_id}"], data)
        return doc_id

    async def delete(self, path):
        self._check(path)
        self.docs.pop(path, None)

    async def commit_batch(self, deletes=(), updates=()):
        deletes, updates = list(deletes), list(updates)
        for path in deletes:
            self._check(path)
        for path, _ in updates:
            self._check(path)
            if path not in self.docs:
                raise StoreError("Failed to commit batched write")

        self.batches.append((deletes, updates))
        for path in deletes:
            self.docs.pop(path, None)
        for path, fields in updates:
            _apply(self.docs[path], fields)


def _matches(data, query_filter):
    field, op, value = query_filter
    if field not in data:
        return False
    actual = data[field]
    if op == '==':
        return actual == value
    if op == '<':
        return actual < value
    if op == '>':
        return actual > value
    raise ValueError(f"Unsupported operator {op}")


def _apply(target, fields):
    for dotted, value in fields.items():
        *parents, leaf = dotted.split('.')
        node = target
        for part in parents:
            node = node.setdefault(part, {})
        if value is firestore.DELETE_FIELD:
            node.pop(leaf, None)
        elif value is firestore.SERVER_TIMESTAMP:
            node[leaf] = datetime.now(timezone.utc)
        elif isinstance(value, firestore.Increment):
            node[leaf] = (node.get(leaf) or 0) + value.value
        else:
            node[leaf] = copy.deepcopy(value)


MEDIA_BASE_URL = "https://media.test"


class FakeStorage:
    """In-memory object storage."""

    bucket_name = "social-connect-media"

    def __init__(self):
        self.objects = {}
        self.uploads = {}
        self.fail_deletes = set()

    async def download_file(self, object_key, local_path):
        if object_key not in self.objects:
            raise StorageError(f"Failed to download {object_key}")
        with open(local_path, 'wb') as f:
            f.write(self.objects[object_key])

    async def upload_file(self, local_path, object_key, content_type, metadata=None):
        with open(local_path, 'rb') as f:
            self.objects[object_key] = f.read()
        self.uploads[object_key] = {'content_type': content_type, 'metadata': metadata or {}}
        return object_key

    async def delete_object(self, object_key):
        if object_key in self.fail_deletes:
            return False
        self.objects.pop(object_key, None)
        return True

    def generate_read_url(self, object_key, expiration=None):
        return f"https://storage.test/{self.bucket_name}/{object_key}?signature=abc"

    def public_url(self, object_key):
        return f"{MEDIA_BASE_URL}/{object_key}"

    def key_from_url(self, url):
        if url and url.startswith(f"{MEDIA_BASE_URL}/"):
            return url[len(MEDIA_BASE_URL) + 1:]
        return object_key_from_url(url, self.bucket_name)


class FakeTransport:
    """Records pushes instead of sending them."""

    def __init__(self):
        self.sent = []
        self.errors = {}

    async def send(self, push):
        if push.token in self.errors:
            raise self.errors[push.token]
        self.sent.append(push)
        return f"projects/test/messages/{len(self.sent)}"

    def reject(self, token, unregistered=False, code="internal"):
        self.errors[token] = TransportError(f"rejected {token}", code=code, unregistered=unregistered)


@pytest.fixture
def settings():
    return Settings(_env_file=None, default_locale="en", environment="test")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def ctx(settings, store, storage, transport):
    return AppContext(settings, store=store, storage=storage, transport=transport)


def image_bytes(width, height, fmt="JPEG", color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def image_size(data):
    with Image.open(io.BytesIO(data)) as img:
        return img.format, img.size

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import google.cloud.firestore
from google.api_core import exceptions as google_exceptions
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import StoreError
from ..schemas import StoredDocument

logger = logging.getLogger(__name__)

# (field, operator, value) as accepted by Firestore's where()
QueryFilter = Tuple[str, str, Any]

TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
)

transient_retry = retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)


class FirestoreStore:
    """
    Async document store over the synchronous Firestore client.

    Every blocking call runs in a worker thread. Writes accept Firestore
    transforms (Increment, DELETE_FIELD, SERVER_TIMESTAMP) and dotted field paths.
    """

    def __init__(self, client: google.cloud.firestore.Client):
        self.db = client

    async def get(self, path: str) -> Optional[StoredDocument]:
        """
        Fetch a single document.

        Args:
            path: Slash-separated document path, e.g. ``users/abc``

        Returns:
            The document, or None if it does not exist
        """
        try:
            snapshot = await asyncio.to_thread(self._get_sync, path)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error reading document {path}: {str(e)}")
            raise StoreError(f"Failed to read {path}") from e

        if not snapshot.exists:
            return None
        return StoredDocument(id=snapshot.id, path=path, data=snapshot.to_dict() or {})

    @transient_retry
    def _get_sync(self, path: str):
        return self.db.document(path).get()

    async def query(self,
                    collection: str,
                    filters: Sequence[QueryFilter] = (),
                    limit: Optional[int] = None) -> List[StoredDocument]:
        """
        Run an equality / inequality query on a collection.

        Args:
            collection: Slash-separated collection path
            filters: (field, operator, value) tuples, ANDed together
            limit: Optional maximum number of results

        Returns:
            Matching documents
        """
        try:
            snapshots = await asyncio.to_thread(self._query_sync, collection, tuple(filters), limit)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error querying {collection} with {filters}: {str(e)}")
            raise StoreError(f"Failed to query {collection}") from e

        return [
            StoredDocument(id=snap.id, path=f"{collection}/{snap.id}", data=snap.to_dict() or {})
            for snap in snapshots
        ]

    @transient_retry
    def _query_sync(self, collection: str, filters: Tuple[QueryFilter, ...], limit: Optional[int]):
        query = self.db.collection(collection)
        for field, op, value in filters:
            query = query.where(field, op, value)
        if limit is not None:
            query = query.limit(limit)
        return list(query.stream())

    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        """Update fields on an existing document; fails if it does not exist"""
        try:
            await asyncio.to_thread(self.db.document(path).update, fields)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error updating document {path}: {str(e)}")
            raise StoreError(f"Failed to update {path}") from e

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        try:
            await asyncio.to_thread(self.db.document(path).set, data, merge=merge)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error writing document {path}: {str(e)}")
            raise StoreError(f"Failed to write {path}") from e

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Append a document with a generated id and return that id"""
        try:
            _, ref = await asyncio.to_thread(self.db.collection(collection).add, data)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error adding document to {collection}: {str(e)}")
            raise StoreError(f"Failed to add to {collection}") from e
        return ref.id

    async def delete(self, path: str) -> None:
        try:
            await asyncio.to_thread(self.db.document(path).delete)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error deleting document {path}: {str(e)}")
            raise StoreError(f"Failed to delete {path}") from e

    async def commit_batch(self,
                           deletes: Iterable[str] = (),
                           updates: Iterable[Tuple[str, Dict[str, Any]]] = ()) -> None:
        """
        Apply deletes and updates as one atomic batched write.

        Args:
            deletes: Document paths to delete
            updates: (path, fields) pairs to update
        """
        batch = self.db.batch()
        for path in deletes:
            batch.delete(self.db.document(path))
        for path, fields in updates:
            batch.update(self.db.document(path), fields)

        try:
            await asyncio.to_thread(batch.commit)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Error committing batched write: {str(e)}")
            raise StoreError("Failed to commit batched write") from e

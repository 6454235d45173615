import logging
import os
import posixpath
import tempfile
from typing import Dict, Optional, Tuple

from google.cloud import firestore

from ..errors import StoreError
from ..schemas import OutcomeReason
from .schemas import DerivativeResult, DerivativeType, RawAsset

logger = logging.getLogger(__name__)

THUMBS_FOLDER = "thumbs"
OPTIMIZED_SUFFIX = "_optimized"
TEMP_PREFIX = "temp/"
DERIVATIVE_CONTENT_TYPE = "image/webp"


class MediaDerivativePipeline:
    """
    Generates a thumbnail and an optimized variant for each uploaded image.

    Derivatives are uploaded next to the original (thumbnails under ``thumbs/``)
    and their read URLs written back to the document that owns the original.
    """

    def __init__(self, ctx):
        self.store = ctx.store
        self.storage = ctx.storage
        self.codec = ctx.codec
        self.thumbnail_size = ctx.settings.thumbnail_size
        self.optimized_max_edge = ctx.settings.optimized_max_edge

    def skip_reason(self, asset: RawAsset) -> Optional[OutcomeReason]:
        """Why an upload must not be processed, or None if it should be"""
        if not asset.content_type or not asset.content_type.startswith("image/"):
            return OutcomeReason.NOT_AN_IMAGE
        if is_derivative_path(asset.path):
            return OutcomeReason.DERIVATIVE_PATH
        if asset.path.startswith(TEMP_PREFIX):
            return OutcomeReason.TEMP_PATH
        return None

    async def process(self, asset: RawAsset) -> DerivativeResult:
        """
        Produce, persist and write back the derivatives of an uploaded image.

        Args:
            asset: The uploaded object

        Returns:
            DerivativeResult: storage keys and URLs of both derivatives, or a
            skipped result for non-images and the pipeline's own outputs

        Raises:
            CodecError: If the image cannot be decoded or encoded
            StorageError: If a transfer fails
        """
        file_path = asset.path
        logger.info(f"Processing file: {file_path}")

        reason = self.skip_reason(asset)
        if reason is not None:
            logger.info(f"Skipping {file_path}: {reason.value}")
            return DerivativeResult(original_path=file_path, skipped=True, reason=reason)

        thumb_key, optimized_key = derivative_paths(file_path)

        with tempfile.TemporaryDirectory(prefix="derivatives-") as workdir:
            local_original = os.path.join(workdir, "original" + posixpath.splitext(file_path)[1])
            local_thumb = os.path.join(workdir, posixpath.basename(thumb_key))
            local_optimized = os.path.join(workdir, posixpath.basename(optimized_key))

            logger.info(f"Downloading {file_path} to {local_original}")
            await self.storage.download_file(file_path, local_original)

            # Thumbnail (exact square, crop-to-fill)
            await self.codec.thumbnail(local_original, local_thumb, self.thumbnail_size)
            logger.info(f"Uploading thumbnail to {thumb_key}")
            await self.storage.upload_file(
                local_thumb,
                thumb_key,
                DERIVATIVE_CONTENT_TYPE,
                provenance(file_path, DerivativeType.THUMBNAIL),
            )

            # Optimized variant (longest edge capped)
            await self.codec.fit_within(local_original, local_optimized, self.optimized_max_edge)
            logger.info(f"Uploading optimized image to {optimized_key}")
            await self.storage.upload_file(
                local_optimized,
                optimized_key,
                DERIVATIVE_CONTENT_TYPE,
                provenance(file_path, DerivativeType.OPTIMIZED),
            )

        thumb_url = self.storage.public_url(thumb_key)
        optimized_url = self.storage.public_url(optimized_key)

        written_back_to = await self.write_back(file_path, thumb_url, optimized_url)

        logger.info(f"Image optimization complete for {file_path}")
        return DerivativeResult(
            original_path=file_path,
            thumbnail_ref=thumb_key,
            optimized_ref=optimized_key,
            thumbnail_url=thumb_url,
            optimized_url=optimized_url,
            written_back_to=written_back_to,
        )

    async def write_back(self, original_path: str, thumb_url: str, optimized_url: str) -> Optional[str]:
        """
        Record derivative URLs on the document owning the original upload.

        Failures are logged and swallowed; the derivatives stay in storage and
        reprocessing regenerates the same outputs.

        Returns:
            The updated document path, or None if nothing was updated
        """
        try:
            target = await self._find_owner(original_path)
            if target is None:
                logger.info(f"No document references {original_path}, skipping write-back")
                return None

            path, fields = target
            if path.startswith("users/"):
                fields.update({'photoURL': optimized_url, 'thumbnailURL': thumb_url})
            elif path.startswith("stories/"):
                # mediaPath keeps the original key once mediaUrl points at the derivative
                fields.update({'mediaUrl': optimized_url, 'thumbnailUrl': thumb_url, 'mediaPath': original_path})
            else:
                fields.update({'imageUrl': optimized_url, 'thumbnailUrl': thumb_url})

            await self.store.update(path, fields)
            logger.info(f"Updated {path} with optimized URLs")
            return path
        except StoreError as e:
            logger.error(f"Error updating documents with optimized URLs for {original_path}: {str(e)}")
            return None

    async def _find_owner(self, original_path: str) -> Optional[Tuple[str, Dict]]:
        segments = original_path.split('/')
        if len(segments) < 3:
            return None
        namespace, owner_id = segments[0], segments[1]

        if namespace == "profiles":
            user = await self.store.get(f"users/{owner_id}")
            if user is None:
                return None
            return user.path, {'updatedAt': firestore.SERVER_TIMESTAMP}

        if namespace == "stories":
            stories = await self.store.query(
                'stories',
                [('userId', '==', owner_id), ('mediaUrl', '==', original_path)],
                limit=1,
            )
            if not stories:
                return None
            return stories[0].path, {'updatedAt': firestore.SERVER_TIMESTAMP}

        if namespace == "chats":
            messages = await self.store.query(
                f"chats/{owner_id}/messages",
                [('imageUrl', '==', original_path)],
                limit=1,
            )
            if not messages:
                return None
            return messages[0].path, {}

        return None


def is_derivative_path(path: str) -> bool:
    segments = path.split('/')
    return THUMBS_FOLDER in segments[:-1] or OPTIMIZED_SUFFIX in segments[-1]


def derivative_paths(original_path: str) -> Tuple[str, str]:
    """
    Deterministic storage keys for both derivatives of an original.

    ``profiles/u1/avatar.jpg`` -> ``profiles/u1/thumbs/thumb_avatar.webp`` and
    ``profiles/u1/avatar_optimized.webp``.
    """
    directory, filename = posixpath.split(original_path)
    stem = posixpath.splitext(filename)[0]
    thumb_key = posixpath.join(directory, THUMBS_FOLDER, f"thumb_{stem}.webp")
    optimized_key = posixpath.join(directory, f"{stem}{OPTIMIZED_SUFFIX}.webp")
    return thumb_key, optimized_key


def provenance(original_path: str, derivative_type: DerivativeType) -> Dict[str, str]:
    return {'original': original_path, 'type': derivative_type.value}

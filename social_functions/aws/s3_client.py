"""
S3 client for storing uploaded media and generated image derivatives
"""
import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..errors import StorageError

logger = logging.getLogger(__name__)


class S3Storage:
    def __init__(self, settings: Settings, **kwargs):
        """
        Initialize S3 client with proper configuration.
        """
        self.s3 = boto3.client(
            's3',
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.aws_s3_endpoint_url,
            **kwargs
        )
        self.bucket_name = settings.aws_s3_bucket_name
        self.media_url_expiration = settings.media_url_expiration
        self.media_base_url = media_base_url(settings)
        logger.info(f"S3 client initialized with bucket: {self.bucket_name}")

    async def download_file(self, object_key: str, local_path: str) -> None:
        """
        Download an object to a local file.

        Args:
            object_key: The key of the object in S3
            local_path: Destination path on local disk
        """
        try:
            await asyncio.to_thread(self.s3.download_file, self.bucket_name, object_key, local_path)
            logger.debug(f"Downloaded {object_key} to {local_path}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error downloading object {object_key}: {e}")
            raise StorageError(f"Failed to download {object_key}") from e

    async def upload_file(self,
                          local_path: str,
                          object_key: str,
                          content_type: str,
                          metadata: Optional[Dict[str, str]] = None) -> str:
        """
        Upload a local file with content type and custom metadata.

        Args:
            local_path: Source path on local disk
            object_key: Destination key in S3
            content_type: MIME type of the object
            metadata: Custom object metadata (stored as x-amz-meta-*)

        Returns:
            str: Object key if the file was uploaded successfully
        """
        extra_args = {'ContentType': content_type, 'Metadata': metadata or {}}
        try:
            await asyncio.to_thread(
                self.s3.upload_file,
                local_path,
                self.bucket_name,
                object_key,
                ExtraArgs=extra_args
            )
            logger.info(f"File uploaded to S3: {object_key}")
            return object_key
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading file to S3: {e}")
            raise StorageError(f"Failed to upload {object_key}") from e

    async def delete_object(self, object_key: str) -> bool:
        """
        Delete an object from the S3 bucket.

        Args:
            object_key: The key of the object to delete

        Returns:
            bool: True if the object was deleted, False otherwise
        """
        try:
            await asyncio.to_thread(
                self.s3.delete_object,
                Bucket=self.bucket_name,
                Key=object_key
            )
            logger.info(f"Deleted object {object_key} from bucket {self.bucket_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting object {object_key}: {e}")
            return False

    def generate_read_url(self, object_key: str, expiration: Optional[int] = None) -> str:
        """
        Generate a short-lived presigned URL for reading an object.

        Args:
            object_key: The key of the object in S3
            expiration: URL lifetime in seconds, defaults to the configured media lifetime

        Returns:
            str: Presigned URL
        """
        try:
            return self.s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': object_key},
                ExpiresIn=expiration or self.media_url_expiration
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating presigned URL: {e}")
            raise StorageError(f"Failed to sign {object_key}") from e

    def public_url(self, object_key: str) -> str:
        """
        Non-expiring URL for an object, safe to persist in documents.

        Points at the CDN when one is configured, otherwise at the /media
        redirect route which signs a fresh URL on every request.
        """
        return f"{self.media_base_url}/{quote(object_key)}"

    def key_from_url(self, url: str) -> Optional[str]:
        if url and url.startswith(f"{self.media_base_url}/"):
            return unquote(url[len(self.media_base_url) + 1:].split('?', 1)[0]) or None
        return object_key_from_url(url, self.bucket_name)


def media_base_url(settings: Settings) -> str:
    if settings.media_base_url:
        return settings.media_base_url.rstrip('/')
    return f"{settings.public_base_url.rstrip('/')}/media"


def object_key_from_url(url: str, bucket_name: Optional[str] = None) -> Optional[str]:
    """
    Recover an object key from a stored media reference.

    Accepts plain keys, virtual-hosted and path-style S3 URLs (presigned or not),
    and Firebase Storage download URLs (``.../o/<encoded key>?...``).
    """
    if not url:
        return None
    if '://' not in url:
        return url.lstrip('/')

    parsed = urlparse(url)
    path = parsed.path
    if '/o/' in path:
        return unquote(path.split('/o/', 1)[1]) or None

    key = unquote(path.lstrip('/'))
    if bucket_name and key.startswith(f"{bucket_name}/") and not parsed.netloc.startswith(f"{bucket_name}."):
        key = key[len(bucket_name) + 1:]
    return key or None

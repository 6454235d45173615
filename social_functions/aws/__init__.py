from .s3_client import S3Storage, object_key_from_url

__all__ = ['S3Storage', 'object_key_from_url']

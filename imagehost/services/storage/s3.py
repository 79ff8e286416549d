"""S3-compatible (AWS S3, Cloudflare R2, MinIO) blob store."""
import boto3
from botocore.client import Config
from botocore.exceptions import ClientError, BotoCoreError
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import quote, unquote
import logging

from imagehost.app.config import settings
from imagehost.core.exceptions import StoreUnavailableError
from imagehost.services.storage.base import ListPage, ObjectInfo, StoredObject

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_MAX_DELETE_BATCH = 1000


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _encode_metadata(metadata: Dict[str, str]) -> Dict[str, str]:
    # x-amz-meta-* values travel as HTTP headers and must be ASCII
    return {name: quote(value, safe="/:") for name, value in metadata.items()}


def _decode_metadata(metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {name: unquote(value) for name, value in (metadata or {}).items()}


class S3BlobStore:
    """BlobStore backed by an S3 bucket, with botocore errors mapped to StoreUnavailableError."""

    def __init__(self, client: Any = None, bucket_name: Optional[str] = None):
        """
        Initialize the store.

        Args:
            client: Optional pre-built boto3 S3 client (tests inject a mock)
            bucket_name: Bucket to use, defaults to settings.S3_BUCKET_NAME
        """
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        if client is not None:
            self.s3_client = client
            return
        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.S3_REGION,
                endpoint_url=settings.S3_ENDPOINT_URL,
                config=Config(signature_version='s3v4'),
            )
            logger.info(f"S3 blob store initialized for bucket: {self.bucket_name}")
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize S3 client: {e}")
            raise StoreUnavailableError(f"S3 initialization failed: {str(e)}")

    def get(self, key: str) -> Optional[StoredObject]:
        """
        Download an object with its content type and user metadata.

        Returns:
            StoredObject, or None if the key does not exist

        Raises:
            StoreUnavailableError: If the request fails
        """
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            body = response['Body'].read()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            logger.error(f"Error downloading {key}: {e}")
            raise StoreUnavailableError(f"Failed to get object: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Error downloading {key}: {e}")
            raise StoreUnavailableError(f"Failed to get object: {str(e)}")

        return StoredObject(
            key=key,
            body=body,
            content_type=response.get('ContentType'),
            custom_metadata=_decode_metadata(response.get('Metadata')),
            size=response.get('ContentLength', len(body)),
            uploaded=response.get('LastModified'),
        )

    def head(self, key: str) -> Optional[ObjectInfo]:
        """Check existence and size without downloading the body."""
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            logger.error(f"Error checking object existence: {e}")
            raise StoreUnavailableError(f"Failed to check object: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Error checking object existence: {e}")
            raise StoreUnavailableError(f"Failed to check object: {str(e)}")

        return ObjectInfo(
            key=key,
            size=response.get('ContentLength', 0),
            uploaded=response.get('LastModified'),
        )

    def put(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        custom_metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Upload bytes under a key.

        Args:
            key: S3 object key
            body: Object content
            content_type: MIME type
            custom_metadata: User metadata (x-amz-meta-*), percent-encoded on the wire

        Raises:
            StoreUnavailableError: If upload fails
        """
        if isinstance(body, str):
            body = body.encode('utf-8')
        params: Dict[str, Any] = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': body,
        }
        if content_type:
            params['ContentType'] = content_type
        if custom_metadata:
            params['Metadata'] = _encode_metadata(custom_metadata)

        try:
            self.s3_client.put_object(**params)
            logger.debug(f"Uploaded {len(body)} bytes to: {key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {key}: {e}")
            raise StoreUnavailableError(f"Failed to put object: {str(e)}")

    def delete(self, keys: Union[str, Iterable[str]]) -> None:
        """
        Delete one key or many (bulk requests of up to 1000 keys).

        Raises:
            StoreUnavailableError: If any key could not be deleted
        """
        if isinstance(keys, str):
            try:
                self.s3_client.delete_object(Bucket=self.bucket_name, Key=keys)
                logger.debug(f"Deleted S3 object: {keys}")
                return
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Error deleting object: {e}")
                raise StoreUnavailableError(f"Failed to delete object: {str(e)}")

        pending = list(keys)
        failed_keys: List[str] = []
        for start in range(0, len(pending), _MAX_DELETE_BATCH):
            chunk = pending[start:start + _MAX_DELETE_BATCH]
            try:
                response = self.s3_client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={'Objects': [{'Key': key} for key in chunk], 'Quiet': True},
                )
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Error in bulk delete: {e}")
                raise StoreUnavailableError(f"Bulk delete failed: {str(e)}")

            for error in response.get('Errors', []):
                logger.error(f"Failed to delete {error['Key']}: {error.get('Message', 'Unknown error')}")
                failed_keys.append(error['Key'])

        if failed_keys:
            raise StoreUnavailableError(f"Failed to delete {len(failed_keys)} objects: {', '.join(failed_keys)}")

    def list(self, prefix: str = "", cursor: Optional[str] = None, limit: int = 1000) -> ListPage:
        """
        List one page of objects under a prefix.

        Args:
            prefix: S3 key prefix
            cursor: Continuation token from a previous page
            limit: Maximum keys to return (max 1000)
        """
        params: Dict[str, Any] = {
            'Bucket': self.bucket_name,
            'Prefix': prefix,
            'MaxKeys': max(1, min(limit, 1000)),
        }
        if cursor:
            params['ContinuationToken'] = cursor

        try:
            response = self.s3_client.list_objects_v2(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing objects: {e}")
            raise StoreUnavailableError(f"Failed to list objects: {str(e)}")

        objects = [
            ObjectInfo(key=obj['Key'], size=obj.get('Size', 0), uploaded=obj.get('LastModified'))
            for obj in response.get('Contents', [])
        ]
        truncated = bool(response.get('IsTruncated'))
        return ListPage(
            objects=objects,
            truncated=truncated,
            cursor=response.get('NextContinuationToken') if truncated else None,
        )

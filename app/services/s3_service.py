"""
S3 object storage service
Handles media and report uploads, public/presigned URLs and prefix listing
"""
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from typing import List, Optional
from urllib.parse import quote
import logging

from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)

# head_object error codes that mean the key is absent
MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class S3Service:
    """Service for managing objects in the media and reports buckets"""

    def __init__(self):
        """Initialize S3 client"""
        self.s3_client = boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL or None,
        )
        self.bucket_name = settings.S3_BUCKET_MEDIA

    def upload_bytes(
        self,
        data: bytes,
        s3_key: str,
        content_type: Optional[str] = None,
        bucket_name: Optional[str] = None,
    ) -> str:
        """
        Upload raw bytes to S3

        Args:
            data: Object body
            s3_key: S3 object key (path in bucket)
            content_type: MIME type of the object
            bucket_name: Optional bucket name (uses media bucket if not provided)

        Returns:
            The object key

        Raises:
            StorageError: If upload fails
        """
        target_bucket = bucket_name or self.bucket_name
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self.s3_client.put_object(
                Bucket=target_bucket,
                Key=s3_key,
                Body=data,
                **extra_args,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload object to S3 ({target_bucket}/{s3_key}): {e}")
            raise StorageError(f"S3 upload failed: {str(e)}")

        logger.info(f"Uploaded {len(data)} bytes to s3://{target_bucket}/{s3_key}")
        return s3_key

    def upload_file(
        self,
        file_path: str,
        s3_key: str,
        content_type: Optional[str] = None,
        bucket_name: Optional[str] = None,
    ) -> str:
        """
        Upload a local file to S3

        Returns:
            The object key

        Raises:
            StorageError: If upload fails
        """
        target_bucket = bucket_name or self.bucket_name
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self.s3_client.upload_file(
                file_path,
                target_bucket,
                s3_key,
                ExtraArgs=extra_args,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload file to S3: {e}")
            raise StorageError(f"S3 upload failed: {str(e)}")

        logger.info(f"Successfully uploaded file to s3://{target_bucket}/{s3_key}")
        return s3_key

    def get_public_url(self, s3_key: str, bucket_name: Optional[str] = None) -> str:
        """Public URL of an object (CDN base when configured)"""
        target_bucket = bucket_name or self.bucket_name
        key = quote(s3_key.lstrip("/"), safe="/")
        if settings.S3_PUBLIC_BASE_URL:
            return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{target_bucket}/{key}"
        return f"https://{target_bucket}.s3.{settings.AWS_REGION}.amazonaws.com/{key}"

    def generate_presigned_url(
        self,
        s3_key: str,
        expiration: int = 3600,
        bucket_name: Optional[str] = None,
    ) -> Optional[str]:
        """
        Generate a presigned URL for temporary access to a file

        Args:
            s3_key: S3 object key
            expiration: URL expiration time in seconds (default 1 hour)
            bucket_name: Optional bucket name (uses media bucket if not provided)

        Returns:
            Presigned URL or None if failed
        """
        try:
            target_bucket = bucket_name or self.bucket_name

            url = self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": target_bucket, "Key": s3_key},
                ExpiresIn=expiration,
            )
            return url

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL: {e}")
            return None

    def list_objects(self, prefix: str, bucket_name: Optional[str] = None, limit: int = 1000) -> List[str]:
        """
        List object keys under a prefix

        Raises:
            StorageError: If listing fails
        """
        target_bucket = bucket_name or self.bucket_name
        keys: List[str] = []
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=target_bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
                    if len(keys) >= limit:
                        return keys
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list s3://{target_bucket}/{prefix}: {e}")
            raise StorageError(f"S3 list failed: {str(e)}")
        return keys

    def object_exists(self, s3_key: str, bucket_name: Optional[str] = None) -> bool:
        """
        Check if an object exists in S3

        Returns:
            True if object exists, False otherwise

        Raises:
            StorageError: If the check fails for any reason other than a missing object
        """
        try:
            self.s3_client.head_object(Bucket=bucket_name or self.bucket_name, Key=s3_key)
            return True
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in MISSING_OBJECT_CODES:
                return False
            logger.error(f"Failed to check s3 object {s3_key} ({code}): {e}")
            raise StorageError(f"S3 head failed: {str(e)}")
        except BotoCoreError as e:
            logger.error(f"Failed to check s3 object {s3_key}: {e}")
            raise StorageError(f"S3 head failed: {str(e)}")

    def delete_prefix(self, prefix: str, bucket_name: Optional[str] = None) -> int:
        """
        Delete every object under a prefix

        Returns:
            Number of objects deleted

        Raises:
            StorageError: If listing or deletion fails
        """
        target_bucket = bucket_name or self.bucket_name
        keys = self.list_objects(prefix, bucket_name=target_bucket, limit=100000)
        deleted = 0
        try:
            for start in range(0, len(keys), 1000):
                chunk = keys[start:start + 1000]
                self.s3_client.delete_objects(
                    Bucket=target_bucket,
                    Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": True},
                )
                deleted += len(chunk)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete objects under s3://{target_bucket}/{prefix}: {e}")
            raise StorageError(f"S3 delete failed: {str(e)}")

        logger.info(f"Deleted {deleted} objects under s3://{target_bucket}/{prefix}")
        return deleted


# Lazily created so importing the module never needs AWS configuration
_s3_service: Optional[S3Service] = None


def get_s3_service() -> S3Service:
    """Get S3 service instance"""
    global _s3_service
    if _s3_service is None:
        _s3_service = S3Service()
    return _s3_service

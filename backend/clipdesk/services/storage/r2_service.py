"""Cloudflare R2 storage service using S3-compatible API"""
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from clipdesk.core.config import settings

logger = logging.getLogger("storage")


def _encode_object_key_for_url(object_key: str) -> str:
    """URL-encode each path segment of an object key, keeping the slashes"""
    if not object_key:
        return ""
    return '/'.join(quote(segment, safe='') for segment in object_key.split('/'))


class R2Service:
    """Service for interacting with Cloudflare R2 storage"""

    def __init__(self):
        """Initialize R2 service with configuration from settings"""
        if not settings.R2_ACCOUNT_ID or not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
            raise ValueError("R2 configuration is missing. Set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, and R2_SECRET_ACCESS_KEY environment variables.")

        if not settings.R2_BUCKET_NAME:
            raise ValueError("R2_BUCKET_NAME is not set. Set R2_BUCKET_NAME environment variable.")

        if not settings.R2_ENDPOINT_URL:
            raise ValueError("R2_ENDPOINT_URL is not set. Set R2_ENDPOINT_URL environment variable.")

        self.bucket = settings.R2_BUCKET_NAME
        self.endpoint_url = settings.R2_ENDPOINT_URL

        self.s3_client = boto3.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4')
        )
        logger.info(f"R2Service initialized for bucket: {self.bucket}")

    def upload_file(self, file_path: Path, object_key: str, content_type: Optional[str] = None) -> bool:
        """Upload a local file to R2

        Returns:
            True if upload succeeded, False otherwise
        """
        if not file_path or not Path(file_path).exists():
            logger.error(f"File not found: {file_path}")
            return False

        if not object_key:
            logger.error("object_key cannot be empty")
            return False

        extra_args = {'ContentType': content_type} if content_type else None
        try:
            self.s3_client.upload_file(str(file_path), self.bucket, object_key, ExtraArgs=extra_args)
            logger.info(f"Successfully uploaded {file_path} to R2 as {object_key}")
            return True
        except ClientError as e:
            logger.error(f"Failed to upload {file_path} to R2 as {object_key}: {e}", exc_info=True)
            return False

    def download_file(self, object_key: str, local_path: Path) -> bool:
        """Download an object from R2 to a local path

        Returns:
            True if download succeeded, False otherwise
        """
        if not object_key:
            logger.error("object_key cannot be empty")
            return False

        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            self.s3_client.download_file(self.bucket, object_key, str(local_path))
            logger.info(f"Successfully downloaded {object_key} from R2 to {local_path}")
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code in ('NoSuchKey', '404'):
                logger.warning(f"Object not found in R2: {object_key}")
            else:
                logger.error(f"Failed to download {object_key} from R2: {e}", exc_info=True)
            return False

    def delete_object(self, object_key: str) -> bool:
        """Delete object from R2

        Returns:
            True if deletion succeeded or object doesn't exist, False on error
        """
        if not object_key:
            logger.error("object_key cannot be empty")
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=object_key)
            logger.info(f"Successfully deleted {object_key} from R2")
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == 'NoSuchKey':
                logger.debug(f"Object already deleted or doesn't exist: {object_key}")
                return True
            logger.error(f"Failed to delete {object_key} from R2: {e}", exc_info=True)
            return False

    def public_url(self, object_key: str) -> str:
        """Public (custom domain) URL platforms can fetch the object from"""
        if not object_key:
            raise ValueError("object_key cannot be empty")
        if not settings.R2_PUBLIC_BASE_URL:
            raise ValueError("R2_PUBLIC_BASE_URL is not configured")
        encoded_path = _encode_object_key_for_url(object_key.lstrip('/'))
        return f"{settings.R2_PUBLIC_BASE_URL.rstrip('/')}/{encoded_path}"


# Global R2 service instance (lazy initialization)
_r2_service: Optional[R2Service] = None


def get_r2_service() -> R2Service:
    """Get or create R2 service instance (lazy initialization)

    Raises:
        ValueError: If R2 configuration is missing
    """
    global _r2_service
    if _r2_service is None:
        _r2_service = R2Service()
    return _r2_service

import logging
import os
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class S3Storage:
    """
    Uploads identity documents to S3 so they can later be verified by URL
    """

    def __init__(self, client, bucket: Optional[str] = None, region: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.AWS_S3_BUCKET
        self.region = region or settings.AWS_REGION

    def _require_bucket(self) -> str:
        if not self.bucket:
            raise StorageError("AWS_S3_BUCKET is not configured")
        return self.bucket

    def object_key(self, original_name: str, folder: Optional[str] = "documents") -> str:
        """<folder>/<sanitized name>_<uuid><ext>"""
        stem, ext = os.path.splitext(os.path.basename(original_name))
        sanitized = re.sub(r"[^a-zA-Z0-9]", "_", stem)
        file_name = f"{sanitized}_{uuid.uuid4()}{ext}"
        return f"{folder}/{file_name}" if folder else file_name

    def object_url(self, key: str) -> str:
        # us-east-1 has no region in its virtual-hosted endpoint
        if self.region == "us-east-1":
            return f"https://{self.bucket}.s3.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(self,
               data: bytes,
               original_name: str,
               folder: Optional[str] = "documents",
               content_type: str = "application/octet-stream",
               is_public: bool = False) -> Dict[str, Any]:
        bucket = self._require_bucket()
        key = self.object_key(original_name, folder)

        try:
            self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read" if is_public else "private",
            )
        except Exception as e:
            logger.error(f"S3 upload error: bucket={bucket} region={self.region} error={str(e)}")
            raise StorageError(f"Failed to upload file to S3: {str(e)}") from e

        logger.info(f"File uploaded to S3: key={key} public={is_public} size={len(data)}")

        return {
            "success": True,
            "url": self.object_url(key),
            "key": key,
            "bucket": bucket,
            "fileName": key.rsplit("/", 1)[-1],
            "originalName": original_name,
            "size": len(data),
            "contentType": content_type,
            "isPublic": is_public,
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        }

    def delete(self, key: str) -> Dict[str, Any]:
        bucket = self._require_bucket()

        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            logger.error(f"S3 delete error: key={key} error={str(e)}")
            raise StorageError(f"Failed to delete file from S3: {str(e)}") from e

        logger.info(f"File deleted from S3: {key}")
        return {
            "success": True,
            "message": "File deleted successfully",
            "key": key
        }

    def presigned_url(self, key: str, expires_in: Optional[int] = None) -> str:
        bucket = self._require_bucket()
        expires_in = expires_in or settings.PRESIGNED_URL_EXPIRY

        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except Exception as e:
            logger.error(f"S3 presigned URL error: key={key} error={str(e)}")
            raise StorageError(f"Failed to generate presigned URL: {str(e)}") from e

        logger.debug(f"Presigned URL generated: key={key} expires_in={expires_in}")
        return url

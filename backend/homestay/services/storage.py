"""Storage service with provider interface (local disk/S3/GCS)."""

import logging
import mimetypes
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from homestay.core.config import StorageProvider, get_settings
from homestay.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

settings = get_settings()


class UploadCategory(str, Enum):
    CLEANING_PHOTOS = "cleaning-photos"
    DEPOSIT_EVIDENCE = "deposit-evidence"
    GENERAL = "general"


@dataclass
class StoredFile:
    path: str
    url: str
    original_name: str
    content_type: str
    size: int


class StorageProviderInterface(ABC):
    """Abstract interface for storage providers."""

    @abstractmethod
    async def save(self, object_path: str, content: bytes, content_type: str) -> None:
        """Write an object, replacing any existing one."""
        pass

    @abstractmethod
    async def open(self, object_path: str) -> bytes:
        """Read an object. Raises ``NotFoundError`` if missing."""
        pass

    @abstractmethod
    async def exists(self, object_path: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, object_path: str) -> bool:
        pass


class LocalStorageProvider(StorageProviderInterface):
    """Files under a directory on local disk."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _resolve(self, object_path: str) -> Path:
        target = (self.root / object_path).resolve()
        if self.root not in target.parents:
            raise ValidationError("Invalid file path")
        return target

    async def save(self, object_path: str, content: bytes, content_type: str) -> None:
        target = self._resolve(object_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    async def open(self, object_path: str) -> bytes:
        target = self._resolve(object_path)
        if not target.is_file():
            raise NotFoundError("File not found")
        return target.read_bytes()

    async def exists(self, object_path: str) -> bool:
        return self._resolve(object_path).is_file()

    async def delete(self, object_path: str) -> bool:
        target = self._resolve(object_path)
        if target.is_file():
            target.unlink()
            return True
        return False


class GCSStorageProvider(StorageProviderInterface):
    """Google Cloud Storage provider."""

    def __init__(self, bucket_name: str, project_id: Optional[str] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from google.cloud import storage
            self._client = storage.Client(project=self.project_id)
        return self._client

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    async def save(self, object_path: str, content: bytes, content_type: str) -> None:
        self.bucket.blob(object_path).upload_from_string(content, content_type=content_type)

    async def open(self, object_path: str) -> bytes:
        from google.api_core.exceptions import NotFound

        try:
            return self.bucket.blob(object_path).download_as_bytes()
        except NotFound:
            raise NotFoundError("File not found")

    async def exists(self, object_path: str) -> bool:
        return self.bucket.blob(object_path).exists()

    async def delete(self, object_path: str) -> bool:
        blob = self.bucket.blob(object_path)
        if blob.exists():
            blob.delete()
            return True
        return False


class S3StorageProvider(StorageProviderInterface):
    """AWS S3 storage provider."""

    def __init__(
        self,
        bucket_name: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        self.region = region
        self._client = None
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key

    @property
    def client(self):
        if self._client is None:
            import boto3
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
            )
        return self._client

    async def save(self, object_path: str, content: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=object_path,
            Body=content,
            ContentType=content_type,
        )

    async def open(self, object_path: str) -> bytes:
        from botocore.exceptions import ClientError

        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=object_path)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFoundError("File not found")
            raise
        return response["Body"].read()

    async def exists(self, object_path: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self.client.head_object(Bucket=self.bucket_name, Key=object_path)
            return True
        except ClientError:
            return False

    async def delete(self, object_path: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=object_path)
            return True
        except ClientError:
            logger.warning(f"[STORAGE] Failed to delete {object_path}")
            return False


class StorageService:
    """High-level storage service wrapping provider interface."""

    ALLOWED_MIME_TYPES = {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/heic",
        "image/gif",
        "application/pdf",
    }

    def __init__(self, provider: StorageProviderInterface, url_prefix: Optional[str] = None):
        self.provider = provider
        self.url_prefix = (url_prefix or settings.upload_url_prefix).rstrip("/")

    @property
    def max_size_bytes(self) -> int:
        return settings.max_upload_size_mb * 1024 * 1024

    def generate_object_path(self, category: UploadCategory, file_name: str) -> str:
        """Generate a unique object path, keeping only the file extension."""
        ext = PurePosixPath(file_name).suffix.lower()
        return f"{category.value}/{uuid.uuid4()}{ext}"

    def url_for(self, object_path: str) -> str:
        return f"{self.url_prefix}/{object_path}"

    async def store(
        self,
        category: UploadCategory,
        file_name: str,
        content_type: Optional[str],
        content: bytes,
    ) -> StoredFile:
        """Validate and persist one upload."""
        mime_type = content_type or mimetypes.guess_type(file_name)[0] or ""
        if mime_type not in self.ALLOWED_MIME_TYPES:
            raise ValidationError(f"Unsupported file type: {mime_type or 'unknown'}")
        if not content:
            raise ValidationError(f"File is empty: {file_name}")
        if len(content) > self.max_size_bytes:
            raise ValidationError(f"File size exceeds maximum of {settings.max_upload_size_mb}MB")

        object_path = self.generate_object_path(category, file_name)
        await self.provider.save(object_path, content, mime_type)
        logger.info(f"[STORAGE] Stored {object_path} ({len(content)} bytes)")

        return StoredFile(
            path=object_path,
            url=self.url_for(object_path),
            original_name=file_name,
            content_type=mime_type,
            size=len(content),
        )

    async def read(self, object_path: str) -> tuple[bytes, str]:
        """Return the object's bytes and a content type guessed from its name."""
        content = await self.provider.open(object_path)
        mime_type = mimetypes.guess_type(object_path)[0] or "application/octet-stream"
        return content, mime_type


def get_storage_service() -> StorageService:
    """Factory function to get storage service based on config."""
    if settings.storage_provider == StorageProvider.GCS:
        provider: StorageProviderInterface = GCSStorageProvider(
            bucket_name=settings.bucket_name,
            project_id=settings.gcs_project_id,
        )
    elif settings.storage_provider == StorageProvider.S3:
        provider = S3StorageProvider(
            bucket_name=settings.bucket_name,
            region=settings.aws_region or "us-east-1",
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    else:
        provider = LocalStorageProvider(settings.upload_dir)

    return StorageService(provider)

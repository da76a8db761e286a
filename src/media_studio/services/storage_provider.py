"""
Storage Provider Interface and Implementations
Abstraction for storing generated artifacts and user uploads (local filesystem, S3)
"""
from abc import ABC, abstractmethod
from typing import Optional
import hashlib
import logging
import mimetypes
import os
from datetime import datetime
from pathlib import Path

import httpx

from ..config import config

logger = logging.getLogger(__name__)

PRIVATE_PREFIX = "private"

# Copied artifacts are served by extension; anything else is stored as .bin
ARTIFACT_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".mp4", ".webm", ".mov", ".mp3", ".wav", ".ogg", ".m4a"}


def _safe_key(key: str) -> str:
    """Strip leading slashes and parent-directory segments from a key"""
    return key.lstrip('/').replace('..', '')


class StorageProvider(ABC):
    """Abstract base class for storage providers"""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store data and return the storage key

        Args:
            key: Storage key/path
            data: Data bytes to store
            content_type: MIME type

        Returns:
            Storage key actually written
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Retrieve data by key, or None if not found"""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete data by key; True if deleted, False if not found"""
        pass

    @abstractmethod
    def get_url(self, key: str) -> str:
        """Public URL for a stored object, reachable by browsers and vendor APIs"""
        pass

    def put_private(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store data that never gets a public URL

        Returns a key under `private/`; read it back with get_private and
        serve it through an authorised route.
        """
        return self.put(f"{PRIVATE_PREFIX}/{_safe_key(key)}", data, content_type)

    def get_private(self, key: str) -> Optional[bytes]:
        return self.get(key)

    def generate_key(self, prefix: str, extension: str = "") -> str:
        """
        Generate a unique storage key

        Args:
            prefix: Key prefix (e.g., 'images', 'payments/screenshots')
            extension: File extension including the dot (e.g., '.png')
        """
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        random_suffix = hashlib.md5(os.urandom(16)).hexdigest()[:8]
        return f"{prefix.strip('/')}/{timestamp}_{random_suffix}{extension}"

    async def put_from_url(
        self,
        url: str,
        prefix: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> str:
        """
        Download a vendor artifact and store it

        Returns:
            Public URL of the stored copy

        Raises:
            httpx.HTTPError: If the download fails
        """
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=config.VENDOR_REQUEST_TIMEOUT, follow_redirects=True)
        try:
            response = await client.get(url)
            response.raise_for_status()
        finally:
            if owns_client:
                await client.aclose()

        content_type = response.headers.get("content-type", "application/octet-stream").split(";")[0]
        extension = (Path(httpx.URL(url).path).suffix or mimetypes.guess_extension(content_type) or "").lower()
        if extension not in ARTIFACT_EXTENSIONS:
            extension = ".bin"
        key = self.put(self.generate_key(prefix, extension), response.content, content_type)
        logger.debug(f"Copied {len(response.content)} bytes from {url} to {key}")
        return self.get_url(key)


class LocalDiskStorageProvider(StorageProvider):
    """Local filesystem storage provider (default for dev), served under /storage"""

    def __init__(
        self,
        base_path: Optional[str] = None,
        public_base_url: Optional[str] = None,
        private_path: Optional[str] = None,
    ):
        self.base_path = Path(base_path or config.STORAGE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.private_path = Path(private_path or config.PRIVATE_STORAGE_PATH)
        self.public_base_url = (public_base_url or config.PUBLIC_BASE_URL).rstrip("/")
        logger.info(f"LocalDiskStorageProvider initialized at {self.base_path}")

    def _path(self, key: str) -> Path:
        return self.base_path / _safe_key(key).replace('/', os.sep)

    def _private_file(self, key: str) -> Path:
        key = _safe_key(key)
        if key.startswith(f"{PRIVATE_PREFIX}/"):
            key = key[len(PRIVATE_PREFIX) + 1:]
        return self.private_path / key.replace('/', os.sep)

    def put_private(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Write outside base_path so the /storage mount never serves it"""
        file_path = self._private_file(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'wb') as f:
            f.write(data)
        logger.debug(f"Stored {len(data)} private bytes to {file_path}")
        return f"{PRIVATE_PREFIX}/{file_path.relative_to(self.private_path).as_posix()}"

    def get_private(self, key: str) -> Optional[bytes]:
        file_path = self._private_file(key)
        if not file_path.exists():
            return None
        with open(file_path, 'rb') as f:
            return f.read()

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store data to local filesystem"""
        file_path = self._path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'wb') as f:
            f.write(data)

        logger.debug(f"Stored {len(data)} bytes to {file_path}")
        return file_path.relative_to(self.base_path).as_posix()

    def get(self, key: str) -> Optional[bytes]:
        file_path = self._path(key)
        if not file_path.exists():
            return None
        with open(file_path, 'rb') as f:
            return f.read()

    def delete(self, key: str) -> bool:
        file_path = self._path(key)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.debug(f"Deleted {file_path}")
        return True

    def get_url(self, key: str) -> str:
        return f"{self.public_base_url}/storage/{_safe_key(key)}"


class S3StorageProvider(StorageProvider):
    """S3-compatible storage provider (for production)"""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: str = "us-east-1"
    ):
        """
        Initialize S3 storage provider

        Args:
            bucket_name: S3 bucket name
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            endpoint_url: Custom S3 endpoint (for S3-compatible services)
            region: AWS region
        """
        # boto3 is only installed with the "s3" extra
        import boto3

        self.bucket_name = bucket_name
        self.region = region
        self.s3_client = boto3.client(
            's3',
            aws_access_key_id=aws_access_key_id or os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=aws_secret_access_key or os.getenv("AWS_SECRET_ACCESS_KEY"),
            endpoint_url=endpoint_url or os.getenv("S3_ENDPOINT_URL"),
            region_name=region
        )

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        key = _safe_key(key)
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type
        )
        return key

    def get(self, key: str) -> Optional[bytes]:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=_safe_key(key))
            return response['Body'].read()
        except self.s3_client.exceptions.NoSuchKey:
            return None

    def delete(self, key: str) -> bool:
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=_safe_key(key))
        return True

    def get_url(self, key: str) -> str:
        """Bucket CDN URL when S3_PUBLIC_BASE_URL is set, otherwise a one-hour presigned URL"""
        public_base = os.getenv("S3_PUBLIC_BASE_URL")
        if public_base:
            return f"{public_base.rstrip('/')}/{_safe_key(key)}"
        return self.s3_client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket_name, 'Key': _safe_key(key)},
            ExpiresIn=3600
        )


_provider: Optional[StorageProvider] = None


def get_storage_provider(provider_name: str = None) -> StorageProvider:
    """
    Factory function to get the configured storage provider

    Args:
        provider_name: Provider name ('local', 's3', or None for STORAGE_PROVIDER)
    """
    global _provider
    if provider_name is None and _provider is not None:
        return _provider

    name = (provider_name or config.STORAGE_PROVIDER).lower()
    if name == "local":
        provider = LocalDiskStorageProvider()
    elif name == "s3":
        if not config.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME environment variable required for S3 storage")
        provider = S3StorageProvider(
            bucket_name=config.S3_BUCKET_NAME,
            region=os.getenv("AWS_REGION", "us-east-1"),
        )
    else:
        raise ValueError(f"Unknown storage provider: {provider_name}")

    if provider_name is None:
        _provider = provider
    return provider


def get_storage() -> StorageProvider:
    """FastAPI dependency for the configured provider"""
    return get_storage_provider()

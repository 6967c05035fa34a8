"""Media host for recipe images.

Images are stored under an ``upload/`` path and addressed by filename, which
doubles as the deletion key. Two backends:

- LocalMediaHost: files on disk, served by the app under /media
- S3MediaHost: any S3-compatible object store
"""

import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from .exceptions import MediaHostError
from .settings import settings

logger = logging.getLogger("recipeshare.media")


@dataclass
class Upload:
    original_name: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        suffix = Path(self.original_name or "").suffix
        return suffix.lstrip(".").lower()


@dataclass
class StoredImage:
    url: str
    filename: str


def thumbnail_url(url: str, width: int = 200) -> str:
    """Return the url of the resized variant of an uploaded image."""
    return url.replace("/upload", f"/upload/w_{width}", 1)


def _new_filename(folder: str, upload: Upload) -> str:
    ext = upload.extension or "jpg"
    return f"{folder}/{uuid.uuid4().hex}.{ext}"


class LocalMediaHost:
    def __init__(self, root: Path, base_url: str = "/media", folder: str = "recipeshare"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.folder = folder
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: str) -> Path:
        if ".." in filename or filename.startswith("/"):
            raise MediaHostError(f"invalid filename {filename!r}")
        return self.root / "upload" / filename

    def upload(self, upload: Upload) -> StoredImage:
        filename = _new_filename(self.folder, upload)
        path = self._path(filename)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(upload.data)
        except OSError as e:
            raise MediaHostError(str(e)) from e
        logger.info(f"Saved {len(upload.data)} bytes to {path}")
        return StoredImage(url=f"{self.base_url}/upload/{filename}", filename=filename)

    def destroy(self, filename: str) -> None:
        path = self._path(filename)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise MediaHostError(str(e)) from e
        logger.info(f"Deleted {path}")

    def open(self, filename: str) -> Optional[Path]:
        try:
            path = self._path(filename)
        except MediaHostError:
            return None
        return path if path.is_file() else None


class S3MediaHost:
    def __init__(
        self,
        endpoint_url: str,
        region_name: str,
        access_key_id: str,
        secret_access_key: str,
        bucket: str,
        public_base_url: str,
        folder: str = "recipeshare",
        client=None,
    ):
        import boto3

        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.folder = folder
        self.s3 = client or boto3.client(
            service_name="s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name,
        )

    def upload(self, upload: Upload) -> StoredImage:
        from botocore.exceptions import BotoCoreError, ClientError

        filename = _new_filename(self.folder, upload)
        try:
            self.s3.put_object(
                Bucket=self.bucket,
                Key=f"upload/{filename}",
                Body=upload.data,
                ContentType=upload.content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise MediaHostError(str(e)) from e
        logger.info(f"Uploaded {filename} to bucket {self.bucket}")
        return StoredImage(url=f"{self.public_base_url}/upload/{filename}", filename=filename)

    def destroy(self, filename: str) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self.s3.delete_object(Bucket=self.bucket, Key=f"upload/{filename}")
        except (BotoCoreError, ClientError) as e:
            raise MediaHostError(str(e)) from e
        logger.info(f"Deleted {filename} from bucket {self.bucket}")


def upload_all(media, uploads: List[Upload]) -> List[StoredImage]:
    """Store every upload or none of them.

    If one upload fails the images already stored are destroyed again and
    the failure is re-raised.
    """
    stored: List[StoredImage] = []
    try:
        for upload in uploads:
            stored.append(media.upload(upload))
    except MediaHostError:
        destroy_all(media, [s.filename for s in stored])
        raise
    return stored


def destroy_all(media, filenames: List[str]) -> None:
    """Best-effort cleanup of images that never made it into a recipe."""
    for filename in filenames:
        try:
            media.destroy(filename)
        except MediaHostError as e:
            logger.warning(f"Could not clean up {filename}: {e}")


def default_media_root() -> Path:
    if settings.media_root:
        return Path(settings.media_root)
    return Path.cwd() / "media"


@lru_cache
def get_media():
    if settings.media_backend == "s3":
        return S3MediaHost(
            endpoint_url=settings.object_store_endpoint,
            region_name=settings.object_store_region,
            access_key_id=settings.object_store_access_key_id,
            secret_access_key=settings.object_store_secret_access_key,
            bucket=settings.object_store_bucket,
            public_base_url=settings.object_public_base_url,
            folder=settings.media_folder,
        )
    return LocalMediaHost(
        default_media_root(),
        base_url=settings.media_base_url,
        folder=settings.media_folder,
    )

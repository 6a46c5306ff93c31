"""Image storage for uploaded property photos.

Photos are normalized before storage: re-encoded as progressive JPEG at
quality 85 and scaled down to fit inside 1920x1080 (never enlarged).
"""

from __future__ import annotations

import io
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, ImageOps, UnidentifiedImageError

from washquote.exceptions import StorageError

logger = logging.getLogger(__name__)

MAX_DIMENSIONS = (1920, 1080)
JPEG_QUALITY = 85
IMAGE_FOLDER = "property-images"


@dataclass(frozen=True)
class ImageUpload:
    """A photo as received from the client."""

    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class StoredImage:
    """A stored photo: its retrievable reference plus the stored bytes."""

    ref: str
    content_type: str
    data: bytes


class ImageStorage(Protocol):
    """Stores a photo and returns a retrievable reference."""

    def upload(self, image: ImageUpload, folder: str = IMAGE_FOLDER) -> StoredImage:
        ...


def optimize_image(data: bytes) -> bytes:
    """Re-encode an image as a bounded-size progressive JPEG.

    Raises:
        StorageError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            img.thumbnail(MAX_DIMENSIONS)
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY, progressive=True)
    except (UnidentifiedImageError, OSError) as exc:
        msg = f"Unreadable image data: {exc}"
        raise StorageError(msg) from exc
    return out.getvalue()


def _object_name() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}.jpg"


class S3ImageStorage:
    """Stores photos as private, server-side encrypted S3 objects."""

    def __init__(
        self,
        bucket: str,
        client: Any | None = None,
        region: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._client = client or boto3.client("s3", region_name=region)

    def upload(self, image: ImageUpload, folder: str = IMAGE_FOLDER) -> StoredImage:
        """Optimize and upload one photo, returning its ``s3://`` reference.

        Raises:
            StorageError: If the image is unreadable or the upload fails.
        """
        body = optimize_image(image.data)
        key = f"{folder}/{_object_name()}"
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType="image/jpeg",
                ACL="private",
                ServerSideEncryption="AES256",
                Metadata={
                    "originalName": image.filename,
                    "uploadedAt": datetime.now(UTC).isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as exc:
            msg = f"Failed to upload image '{image.filename}': {exc}"
            raise StorageError(msg) from exc

        logger.info("Uploaded %s to s3://%s/%s", image.filename, self._bucket, key)
        return StoredImage(
            ref=f"s3://{self._bucket}/{key}",
            content_type="image/jpeg",
            data=body,
        )

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Return a time-limited download URL for a stored object."""
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            msg = f"Failed to delete s3://{self._bucket}/{key}: {exc}"
            raise StorageError(msg) from exc


class LocalImageStorage:
    """Stores photos on the local filesystem; used when no bucket is configured."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    def upload(self, image: ImageUpload, folder: str = IMAGE_FOLDER) -> StoredImage:
        body = optimize_image(image.data)
        path = self._root / folder / _object_name()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError as exc:
            msg = f"Failed to write image '{image.filename}': {exc}"
            raise StorageError(msg) from exc

        logger.info("Stored %s at %s", image.filename, path)
        return StoredImage(
            ref=path.resolve().as_uri(),
            content_type="image/jpeg",
            data=body,
        )

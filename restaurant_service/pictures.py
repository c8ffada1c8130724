"""
Restaurant picture lifecycle on top of GridFS.

Upload order: validate -> store new blob -> link pictureId -> drop old blob.
The old blob is only removed once the new reference is committed, so a
failure mid-way leaves an orphaned blob at worst, never a dangling
pictureId. Cleanup failures are logged and swallowed.
"""
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

from bson import ObjectId
from fastapi import UploadFile
from gridfs.errors import NoFile

from restaurant_service.config import config
from restaurant_service.database import Database
from restaurant_service.errors import BadRequestError, NotFoundError, ServerError
from restaurant_service.logs import safe_log

logger = logging.getLogger(__name__)


@dataclass
class PictureUpload:
    """An upload that passed validation."""
    filename: str
    content_type: str
    data: bytes


@dataclass
class PictureDownload:
    content_type: str
    chunks: AsyncIterator[bytes]


async def read_upload(picture: Optional[UploadFile]) -> PictureUpload:
    """
    Validate the multipart file. Rejects before any store interaction:
    no file, non-image content type, payload over MAX_PICTURE_BYTES.
    """
    if picture is None or not picture.filename:
        raise BadRequestError("No image file provided")

    content_type = picture.content_type or ""
    if not content_type.startswith("image/"):
        raise BadRequestError("Only image files are allowed", details=f"Got content type '{content_type}'")

    # Read at most one byte past the cap so oversize payloads are not buffered whole
    data = await picture.read(config.MAX_PICTURE_BYTES + 1)
    if len(data) > config.MAX_PICTURE_BYTES:
        max_mb = config.MAX_PICTURE_BYTES / (1024 * 1024)
        raise BadRequestError(f"File size exceeds maximum of {max_mb:g}MB")

    return PictureUpload(filename=picture.filename, content_type=content_type, data=data)


async def discard_picture(file_id: Any, reason: str) -> bool:
    """Best-effort blob delete. Returns False when it could not be removed."""
    try:
        await Database.delete_picture(ObjectId(file_id))
        return True
    except NoFile:
        safe_log("Picture already deleted", level="warning", logger=logger, file_id=file_id, reason=reason)
    except Exception as e:
        safe_log(f"Failed to delete picture: {e}", level="warning", logger=logger, file_id=file_id, reason=reason)
    return False


async def replace_picture(restaurant: Dict[str, Any], upload: PictureUpload) -> ObjectId:
    """
    Store the upload and point the restaurant at it.
    Returns the new file id. Raises ServerError on upload or link failure.
    """
    restaurant_id = restaurant["_id"]
    old_picture_id = restaurant.get("pictureId")

    try:
        file_id = await Database.upload_picture(
            upload.filename, upload.data, upload.content_type, restaurant_id
        )
    except Exception as e:
        safe_log(f"Picture upload failed: {e}", level="error", logger=logger,
                 restaurant_id=restaurant_id)
        raise ServerError("Failed to upload picture", details=str(e))

    try:
        matched, _ = await Database.update_restaurant(restaurant_id, {"pictureId": file_id})
    except Exception as e:
        safe_log(f"Linking picture failed: {e}", level="error", logger=logger,
                 restaurant_id=restaurant_id, file_id=file_id)
        await discard_picture(file_id, reason="link failed")
        raise ServerError("Failed to upload picture", details=str(e))

    if matched == 0:
        # Restaurant deleted while the upload was in flight
        await discard_picture(file_id, reason="restaurant gone")
        raise NotFoundError("Restaurant not found")

    if old_picture_id:
        await discard_picture(old_picture_id, reason="replaced")

    safe_log("Picture stored", logger=logger, restaurant_id=restaurant_id, file_id=file_id,
             size=len(upload.data), content_type=upload.content_type)
    return file_id


async def open_restaurant_picture(restaurant: Dict[str, Any]) -> PictureDownload:
    """
    Open the restaurant's picture for streaming.
    A missing or unreadable blob is reported as not found.
    """
    picture_id = restaurant.get("pictureId")
    if not picture_id:
        raise NotFoundError("Restaurant has no picture")

    try:
        content_type, chunks = await Database.open_picture(ObjectId(picture_id))
    except Exception as e:
        safe_log(f"Picture unavailable: {e}", level="warning", logger=logger,
                 restaurant_id=restaurant["_id"], file_id=picture_id)
        raise NotFoundError("Picture not found")

    return PictureDownload(
        content_type=content_type or config.DEFAULT_PICTURE_TYPE,
        chunks=chunks,
    )


async def guarded_chunks(chunks: AsyncIterator[bytes], file_id: Any) -> AsyncIterator[bytes]:
    """Headers are already sent once streaming starts; errors end the stream."""
    try:
        async for chunk in chunks:
            yield chunk
    except Exception as e:
        safe_log(f"Picture stream interrupted: {e}", level="error", logger=logger, file_id=file_id)

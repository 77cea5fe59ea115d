from fastapi import HTTPException, UploadFile, status

from config import settings


async def read_image_upload(upload: UploadFile) -> dict:
    """Read an uploaded image into memory, enforcing type and size limits.

    Returns {"data": bytes, "content_type": str}.
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{upload.filename or 'upload'} is not an image",
        )
    raw = await upload.read()
    if not raw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(raw) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )
    return {"data": raw, "content_type": content_type}

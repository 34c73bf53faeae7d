"""
Attachment side channel:
- POST /api/files/upload: store a JPEG/PNG, return its url for experimental_attachments
- GET /api/files/{name}: serve a stored file (names are random UUIDs)
"""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from chatbot.auth import get_current_user
from chatbot.models.user import User
from chatbot.schemas.files import UploadResponse
from chatbot.services.file_service import FILES_URL_PREFIX, resolve_upload_path, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/upload", response_model=UploadResponse)
def upload_file(
    file: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
):
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    name, content_type = save_upload(file)
    logger.info("User %s uploaded %s (%s)", user.id, name, content_type)
    return UploadResponse(
        url=f"{FILES_URL_PREFIX}{name}",
        pathname=file.filename or name,
        content_type=content_type,
    )


@router.get("/{name}")
def get_file(name: str):
    path = resolve_upload_path(name)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    media_type = "image/png" if path.suffix == ".png" else "image/jpeg"
    return FileResponse(path, media_type=media_type)

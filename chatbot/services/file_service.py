"""Attachment uploads: stored on local disk under upload_dir, served back by the files router."""
import logging
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile, status

from chatbot.config import get_settings

logger = logging.getLogger(__name__)

FILE_CONTENT_TYPES = {"image/jpeg": ".jpg", "image/png": ".png"}
FILES_URL_PREFIX = "/api/files/"
CHUNK_SIZE = 1024 * 1024  # 1 MB


def upload_dir() -> Path:
    settings = get_settings()
    if settings.upload_dir:
        return Path(settings.upload_dir)
    return Path(__file__).resolve().parent.parent.parent / "uploads" / "files"


def save_upload(file: UploadFile) -> tuple[str, str]:
    """Validate and store an attachment. Returns (stored file name, content type)."""
    settings = get_settings()
    ct = (file.content_type or "").split(";")[0].strip().lower()
    if ct not in FILE_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File type should be JPEG or PNG",
        )
    upload_dir().mkdir(parents=True, exist_ok=True)
    name = f"{uuid.uuid4()}{FILE_CONTENT_TYPES[ct]}"
    path = upload_dir() / name
    written = 0
    with path.open("wb") as f:
        while chunk := file.file.read(CHUNK_SIZE):
            written += len(chunk)
            if written > settings.upload_max_bytes:
                break
            f.write(chunk)
    if written > settings.upload_max_bytes:
        path.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size should be less than {settings.upload_max_bytes // (1024 * 1024)}MB",
        )
    if written == 0:
        path.unlink(missing_ok=True)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    return name, ct


def resolve_upload_path(name: str) -> Path | None:
    """Path of a stored upload, or None if missing or outside upload_dir."""
    base = upload_dir().resolve()
    try:
        path = (base / name).resolve()
        path.relative_to(base)  # raises ValueError if path escaped
    except (ValueError, OSError):
        return None
    return path if path.is_file() else None


def read_local_attachment(url: str) -> bytes | None:
    """Bytes of an attachment we stored ourselves (url /api/files/<name>); None for external urls."""
    if FILES_URL_PREFIX not in url:
        return None
    name = url.split(FILES_URL_PREFIX, 1)[1].split("?", 1)[0]
    path = resolve_upload_path(name)
    if path is None:
        logger.warning("Attachment %s not found in upload dir", url)
        return None
    return path.read_bytes()

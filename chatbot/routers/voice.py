"""
POST /api/gemini-voice: transcribe a recorded clip and answer it (multipart field "audio").
Errors use the {"error": ...} body the voice recorder expects.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from chatbot.auth import bearer_scheme, get_current_user
from chatbot.config import get_settings
from chatbot.database import get_db
from chatbot.models.user import User
from chatbot.schemas.voice import VoiceReply, VoiceResponse
from chatbot.services import voice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["voice"])


def _current_user_or_none(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    try:
        return get_current_user(credentials, db)
    except HTTPException:
        return None


@router.post("/gemini-voice", response_model=VoiceResponse)
async def gemini_voice(
    audio: UploadFile | None = File(None),
    user: User | None = Depends(_current_user_or_none),
):
    if user is None:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})
    if not voice_service.is_configured():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Gemini API key is not configured"},
        )
    if audio is None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "No audio file provided"})

    data = await audio.read()
    if not data:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "No audio file provided"})
    if len(data) > get_settings().voice_max_bytes:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Audio file too large"})

    mime_type = (audio.content_type or "").split(";")[0].strip().lower() or None
    if mime_type and not mime_type.startswith("audio/"):
        mime_type = None

    loop = asyncio.get_running_loop()
    try:
        transcript, text = await loop.run_in_executor(None, voice_service.transcribe_audio, data, mime_type)
    except Exception as e:
        logger.exception("Voice request failed (user %s)", user.id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Failed to process audio"},
        )

    return VoiceResponse(transcript=transcript, response=VoiceReply(text=text))

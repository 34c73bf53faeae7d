"""
Voice input: send a recorded clip to a Gemini multimodal model and guess the transcript
from its free-text reply. Best effort only; the reply is returned alongside the guess.
"""
import logging
import re
import threading

from google import genai
from google.genai import types

from chatbot.config import get_settings

logger = logging.getLogger(__name__)

VOICE_INSTRUCTION = (
    "I'm speaking to you through audio. Please transcribe what I said and respond as a helpful AI assistant."
)
DEFAULT_TRANSCRIPT = "Audio processed successfully"
DEFAULT_AUDIO_MIME_TYPE = "audio/wav"

_TRANSCRIPT_PATTERN = re.compile(r"(?:you said|I heard|transcript):\s*[\"']?(.*?)[\"']?(?:\.|$)", re.I)

_voice_client = None
_voice_lock = threading.Lock()


class VoiceConfigurationError(RuntimeError):
    """GEMINI_API_KEY missing."""


def _get_client():
    global _voice_client
    if _voice_client is not None:
        return _voice_client
    settings = get_settings()
    if not settings.gemini_api_key:
        raise VoiceConfigurationError("Gemini API key is not configured")
    with _voice_lock:
        if _voice_client is None:
            _voice_client = genai.Client(api_key=settings.gemini_api_key)
    return _voice_client


def is_configured() -> bool:
    return bool(get_settings().gemini_api_key)


def extract_transcript(response_text: str) -> str:
    """Heuristic: look for "you said: ...", "I heard: ...", "transcript: ..." in the reply."""
    match = _TRANSCRIPT_PATTERN.search(response_text or "")
    if match and match.group(1) and match.group(1).strip():
        return match.group(1).strip()
    return DEFAULT_TRANSCRIPT


def transcribe_audio(audio: bytes, mime_type: str | None = None) -> tuple[str, str]:
    """
    Returns (transcript, full model reply). The clip goes inline; the SDK base64-encodes it.
    Raises on API or model errors.
    """
    client = _get_client()
    settings = get_settings()
    contents = [
        types.Content(
            role="user",
            parts=[
                types.Part.from_text(text=VOICE_INSTRUCTION),
                types.Part.from_bytes(data=audio, mime_type=mime_type or DEFAULT_AUDIO_MIME_TYPE),
            ],
        )
    ]
    response = client.models.generate_content(
        model=settings.voice_model,
        contents=contents,
        config=types.GenerateContentConfig(
            temperature=0.7,
            top_k=40,
            top_p=0.95,
            max_output_tokens=1024,
        ),
    )
    if not response or not response.candidates:
        raise ValueError("Empty response from model")
    text = getattr(response, "text", None) or ""
    logger.info("Voice clip processed (%d bytes, %d chars reply)", len(audio), len(text))
    return extract_transcript(text), text

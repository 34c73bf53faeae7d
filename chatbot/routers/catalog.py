"""
Model and writing-style catalogs, and the caller's current selection:
- GET /api/models
- GET /api/writing-styles
- GET /api/preferences, PUT /api/preferences
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from chatbot.ai.models import CHAT_MODELS, DEFAULT_CHAT_MODEL, get_chat_model
from chatbot.ai.prompts import DEFAULT_WRITING_STYLE, WRITING_STYLES
from chatbot.auth import get_current_user
from chatbot.database import get_db
from chatbot.models.user import User
from chatbot.repositories import preference_repository
from chatbot.schemas.catalog import (
    ChatModelOut,
    ChatModelsResponse,
    PreferencesIn,
    PreferencesOut,
    WritingStyleOut,
)

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/models", response_model=ChatModelsResponse)
def list_models():
    return ChatModelsResponse(
        default_chat_model=DEFAULT_CHAT_MODEL,
        models=[ChatModelOut.model_validate(m) for m in CHAT_MODELS],
    )


@router.get("/writing-styles", response_model=list[WritingStyleOut])
def list_writing_styles():
    return [
        WritingStyleOut(name=name, prompt=style.prompt, tools=list(style.tools))
        for name, style in WRITING_STYLES.items()
    ]


def _preferences_out(pref) -> PreferencesOut:
    model = pref.selected_chat_model if pref else None
    style = pref.selected_writing_style if pref else None
    # Stored values that left the catalogs fall back to the defaults
    if not model or get_chat_model(model) is None:
        model = DEFAULT_CHAT_MODEL
    if not style or style not in WRITING_STYLES:
        style = DEFAULT_WRITING_STYLE
    return PreferencesOut(selected_chat_model=model, selected_writing_style=style)


@router.get("/preferences", response_model=PreferencesOut)
def get_preferences(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _preferences_out(preference_repository.get_preferences(db, user.id))


@router.put("/preferences", response_model=PreferencesOut)
def update_preferences(
    body: PreferencesIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if body.selected_chat_model is not None and get_chat_model(body.selected_chat_model) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown chat model: {body.selected_chat_model}",
        )
    if body.selected_writing_style is not None and body.selected_writing_style not in WRITING_STYLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown writing style: {body.selected_writing_style}",
        )
    pref = preference_repository.save_preferences(
        db,
        user.id,
        selected_chat_model=body.selected_chat_model,
        selected_writing_style=body.selected_writing_style,
    )
    return _preferences_out(pref)

"""Per-user chat model / writing style selection."""
from sqlalchemy.orm import Session

from chatbot.models.user_preference import UserPreference


def get_preferences(db: Session, user_id: str) -> UserPreference | None:
    return db.query(UserPreference).filter(UserPreference.user_id == user_id).first()


def save_preferences(
    db: Session,
    user_id: str,
    *,
    selected_chat_model: str | None = None,
    selected_writing_style: str | None = None,
) -> UserPreference:
    """Upsert. Fields left as None keep their stored value."""
    pref = get_preferences(db, user_id)
    if pref is None:
        pref = UserPreference(user_id=user_id)
        db.add(pref)
    if selected_chat_model is not None:
        pref.selected_chat_model = selected_chat_model
    if selected_writing_style is not None:
        pref.selected_writing_style = selected_writing_style
    db.commit()
    db.refresh(pref)
    return pref

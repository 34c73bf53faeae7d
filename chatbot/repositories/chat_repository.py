"""
Chat persistence: Chat + Message + Vote. DB as source of truth.
All operations are sync (used from sync endpoints or run_in_executor from async).
Ownership is checked by callers against chat.user_id before any write.
"""
from sqlalchemy import desc
from sqlalchemy.orm import Session

from chatbot.models.chat import Chat
from chatbot.models.message import Message
from chatbot.models.vote import Vote


def save_chat(db: Session, chat_id: str, user_id: str, title: str) -> Chat:
    chat = Chat(id=chat_id, user_id=user_id, title=title)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    return chat


def get_chat_by_id(db: Session, chat_id: str) -> Chat | None:
    return db.query(Chat).filter(Chat.id == chat_id).first()


def get_chats_by_user_id(db: Session, user_id: str) -> list[Chat]:
    return (
        db.query(Chat)
        .filter(Chat.user_id == user_id)
        .order_by(desc(Chat.created_at))
        .all()
    )


def delete_chat_by_id(db: Session, chat_id: str) -> None:
    """Remove votes, messages and the chat itself in one transaction."""
    db.query(Vote).filter(Vote.chat_id == chat_id).delete(synchronize_session=False)
    db.query(Message).filter(Message.chat_id == chat_id).delete(synchronize_session=False)
    db.query(Chat).filter(Chat.id == chat_id).delete(synchronize_session=False)
    db.commit()


def save_messages(db: Session, messages: list[dict]) -> list[Message]:
    """
    Persist messages in order. Each dict: id?, chat_id, role, content,
    reasoning?, attachments?, created_at?.
    """
    rows = [Message(**m) for m in messages]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    return rows


def get_messages_by_chat_id(db: Session, chat_id: str) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at)
        .all()
    )


def get_message_by_id(db: Session, message_id: str) -> Message | None:
    return db.query(Message).filter(Message.id == message_id).first()


def vote_message(db: Session, chat_id: str, message_id: str, vote_type: str) -> Vote:
    """Upsert: one vote per (chat, message)."""
    is_upvoted = vote_type == "up"
    vote = db.query(Vote).filter(Vote.chat_id == chat_id, Vote.message_id == message_id).first()
    if vote is None:
        vote = Vote(chat_id=chat_id, message_id=message_id, is_upvoted=is_upvoted)
        db.add(vote)
    else:
        vote.is_upvoted = is_upvoted
    db.commit()
    db.refresh(vote)
    return vote


def get_votes_by_chat_id(db: Session, chat_id: str) -> list[Vote]:
    return db.query(Vote).filter(Vote.chat_id == chat_id).all()


class ChatRepository:
    """Thin wrapper for dependency injection; delegates to module functions."""

    @staticmethod
    def save_chat(db: Session, chat_id: str, user_id: str, title: str) -> Chat:
        return save_chat(db, chat_id, user_id, title)

    @staticmethod
    def get_chat_by_id(db: Session, chat_id: str) -> Chat | None:
        return get_chat_by_id(db, chat_id)

    @staticmethod
    def get_chats_by_user_id(db: Session, user_id: str) -> list[Chat]:
        return get_chats_by_user_id(db, user_id)

    @staticmethod
    def delete_chat_by_id(db: Session, chat_id: str) -> None:
        return delete_chat_by_id(db, chat_id)

    @staticmethod
    def save_messages(db: Session, messages: list[dict]) -> list[Message]:
        return save_messages(db, messages)

    @staticmethod
    def get_messages_by_chat_id(db: Session, chat_id: str) -> list[Message]:
        return get_messages_by_chat_id(db, chat_id)

    @staticmethod
    def get_message_by_id(db: Session, message_id: str) -> Message | None:
        return get_message_by_id(db, message_id)

    @staticmethod
    def vote_message(db: Session, chat_id: str, message_id: str, vote_type: str) -> Vote:
        return vote_message(db, chat_id, message_id, vote_type)

    @staticmethod
    def get_votes_by_chat_id(db: Session, chat_id: str) -> list[Vote]:
        return get_votes_by_chat_id(db, chat_id)

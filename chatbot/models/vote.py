"""Up/down feedback on one assistant message."""
from sqlalchemy import Column, String, Boolean, ForeignKey
from chatbot.database import Base


class Vote(Base):
    __tablename__ = "votes"

    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    message_id = Column(String(36), ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    is_upvoted = Column(Boolean, nullable=False)

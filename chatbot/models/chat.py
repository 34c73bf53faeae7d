"""A conversation owned by one user. Title is generated from the first user message."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from chatbot.database import Base


class Chat(Base):
    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    messages = relationship(
        "Message",
        back_populates="chat",
        order_by="Message.created_at",
        cascade="all, delete-orphan",
        lazy="select",
    )
    votes = relationship("Vote", cascade="all, delete-orphan", lazy="select")

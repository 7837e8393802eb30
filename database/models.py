"""
SQLAlchemy ORM models.

Portable column types only (JSON rather than JSONB) so the same models run
on PostgreSQL in production and SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_preferences() -> dict:
    return {
        "replyTone": "professional",
        "autoSuggestReplies": True,
        "dailyBriefing": True,
    }


class ConnectionKind(str, Enum):
    """Discriminant for how a Connection was created."""

    OAUTH = "oauth"
    SIMULATED = "simulated"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(128))
    profile_image = Column(Text)
    preferences = Column(JSON, default=default_preferences)
    # Bumped on logout; session cookies carrying an older value are rejected.
    session_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    connections = relationship("Connection", back_populates="user", cascade="all, delete-orphan")
    emails = relationship("Email", back_populates="user", cascade="all, delete-orphan")
    events = relationship("CalendarEvent", back_populates="user", cascade="all, delete-orphan")


class Connection(Base):
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("user_id", "service", name="uq_connections_user_service"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service = Column(String(32), nullable=False)
    kind = Column(String(16), nullable=False, default=ConnectionKind.OAUTH.value)
    access_token = Column(Text, nullable=False)   # Fernet ciphertext
    refresh_token = Column(Text)                  # Fernet ciphertext
    token_expiry = Column(DateTime(timezone=True))
    email = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="connections")

    @property
    def is_simulated(self) -> bool:
        return self.kind == ConnectionKind.SIMULATED.value


class PendingOAuthFlow(Base):
    """An authorization-code flow that was started and not yet called back."""

    __tablename__ = "pending_oauth_flows"

    nonce = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Email(Base):
    __tablename__ = "emails"
    __table_args__ = (
        UniqueConstraint("user_id", "message_id", name="uq_emails_user_message"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String(255), nullable=False)
    sender = Column(Text, nullable=False)
    recipient = Column(Text, nullable=False)
    subject = Column(Text)
    snippet = Column(Text)
    body = Column(Text)
    received_at = Column(DateTime(timezone=True), nullable=False)
    is_read = Column(Boolean, default=False)
    is_priority = Column(Boolean, default=False)
    labels = Column(JSON, default=list)
    ai_summary = Column(Text)
    conversation_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User", back_populates="emails")
    smart_replies = relationship("SmartReply", back_populates="email", cascade="all, delete-orphan")


class CalendarEvent(Base):
    __tablename__ = "calendar_events"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_events_user_event"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(255), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    location = Column(Text)
    attendees = Column(JSON, default=list)
    is_all_day = Column(Boolean, default=False)
    tags = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User", back_populates="events")


class SmartReply(Base):
    __tablename__ = "smart_replies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email_id = Column(Integer, ForeignKey("emails.id", ondelete="CASCADE"), nullable=False)
    reply_text = Column(Text, nullable=False)
    reply_tone = Column(String(32), default="professional")
    status = Column(String(16), default="pending")  # pending | sent | rejected
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    email = relationship("Email", back_populates="smart_replies")


class DailyBrief(Base):
    __tablename__ = "daily_briefs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), default=_utcnow)
    summary = Column(Text, nullable=False)
    priorities = Column(JSON, default=list)
    email_count = Column(Integer, default=0)
    event_count = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

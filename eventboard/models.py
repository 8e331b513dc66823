"""SQLAlchemy models for EventBoard."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import utcnow

Base = declarative_base()


def _now() -> datetime:
    return utcnow()


class EventCategory(str, enum.Enum):
    CONCERT = "CONCERT"
    SHOW = "SHOW"
    OPERA = "OPERA"
    THEATER = "THEATER"
    CONFERENCE = "CONFERENCE"
    WORKSHOP = "WORKSHOP"
    TEAMBUILDING = "TEAMBUILDING"
    BIRTHDAY = "BIRTHDAY"
    WEDDING = "WEDDING"
    CORPORATE = "CORPORATE"
    OTHER = "OTHER"


class RSVPStatus(str, enum.Enum):
    GOING = "GOING"
    MAYBE = "MAYBE"
    NOT_GOING = "NOT_GOING"


class User(Base):
    """Account owned by the identity provider; read-only here."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    events = relationship("Event", back_populates="creator")
    rsvps = relationship("RSVP", back_populates="user")


class AuthSession(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    user = relationship("User")


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    location = Column(String(255), nullable=False)
    category = Column(
        Enum(EventCategory, native_enum=False, length=32), nullable=False
    )
    image = Column(String(1024), nullable=True)
    max_attendees = Column(Integer, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    creator_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    creator = relationship("User", back_populates="events")
    rsvps = relationship(
        "RSVP",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="RSVP.id",
    )
    invitations = relationship(
        "Invitation", back_populates="event", cascade="all, delete-orphan"
    )


class RSVP(Base):
    __tablename__ = "rsvps"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_rsvps_event_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    status = Column(
        Enum(RSVPStatus, native_enum=False, length=16),
        nullable=False,
        default=RSVPStatus.GOING,
    )
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    event = relationship("Event", back_populates="rsvps")
    user = relationship("User", back_populates="rsvps")


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_invitations_event_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="invitations")
    user = relationship("User")

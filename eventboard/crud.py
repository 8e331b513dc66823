"""CRUD helpers for events, RSVPs, and invitations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from .errors import (
    EventFullError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from .models import (
    AuthSession,
    Event,
    EventCategory,
    Invitation,
    RSVP,
    RSVPStatus,
    User,
)
from .utils import parse_iso_datetime, to_naive_utc, utcnow

ALL_CATEGORIES = "ALL"
REQUIRED_EVENT_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "location",
    "category",
)


@dataclass(frozen=True)
class Identity:
    """The authenticated caller for a single request."""

    id: str
    name: str | None
    email: str


def _now() -> datetime:
    return utcnow()


def identity_for_token(
    session: Session, token: str | None, *, now: datetime | None = None
) -> Identity | None:
    """Resolve a session token issued by the identity provider."""
    if not token:
        return None
    stmt = (
        select(AuthSession)
        .where(AuthSession.token == token, AuthSession.expires_at > (now or _now()))
        .options(selectinload(AuthSession.user))
    )
    auth_session = session.scalars(stmt).first()
    if auth_session is None or auth_session.user is None:
        return None
    user = auth_session.user
    return Identity(id=user.id, name=user.name, email=user.email)


def parse_category(raw: Any) -> EventCategory:
    if isinstance(raw, EventCategory):
        return raw
    normalized = str(raw or "").strip().upper()
    try:
        return EventCategory[normalized]
    except KeyError as exc:
        raise ValidationError("Invalid category") from exc


def parse_category_filter(raw: str | None) -> EventCategory | None:
    """Return the category to filter on, or ``None`` for all categories."""
    normalized = (raw or "").strip()
    if not normalized or normalized.upper() == ALL_CATEGORIES:
        return None
    return parse_category(normalized)


def parse_rsvp_status(raw: Any) -> RSVPStatus:
    if isinstance(raw, RSVPStatus):
        return raw
    normalized = str(raw or "").strip().upper().replace(" ", "_")
    try:
        return RSVPStatus[normalized]
    except KeyError as exc:
        raise ValidationError("Invalid RSVP status") from exc


def normalize_max_attendees(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError("Invalid maximum attendees")
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid maximum attendees") from exc
    if value < 1:
        raise ValidationError("Invalid maximum attendees")
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _coerce_datetime(value: datetime | str) -> datetime:
    try:
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return parse_iso_datetime(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("Invalid date format") from exc


def create_event(
    session: Session,
    *,
    creator: Identity,
    title: str | None,
    description: str | None,
    start_date: datetime | str | None,
    end_date: datetime | str | None,
    location: str | None,
    category: EventCategory | str | None,
    max_attendees: int | str | None = None,
    image: str | None = None,
    is_private: bool | None = None,
    is_published: bool | None = None,
    now: datetime | None = None,
) -> Event:
    """Validate and persist a new event owned by ``creator``.

    Checks run in a fixed order so clients always see the first problem:
    missing fields, then malformed values, then ``end <= start``, then a
    start in the past. Nothing is written unless every check passes.
    """
    values = {
        "title": title,
        "description": description,
        "start_date": start_date,
        "end_date": end_date,
        "location": location,
        "category": category,
    }
    if any(_is_blank(values[name]) for name in REQUIRED_EVENT_FIELDS):
        raise ValidationError("Missing required fields")

    normalized_category = parse_category(category)
    start = _coerce_datetime(start_date)
    end = _coerce_datetime(end_date)
    normalized_max = normalize_max_attendees(max_attendees)

    if end <= start:
        raise ValidationError("End date must be after start date")
    if start < (now or _now()):
        raise ValidationError("Start date cannot be in the past")

    event = Event(
        title=title.strip(),
        description=description.strip(),
        start_date=start,
        end_date=end,
        location=location.strip(),
        category=normalized_category,
        image=(image or "").strip() or None,
        max_attendees=normalized_max,
        is_private=bool(is_private),
        is_published=bool(is_published),
        creator_id=creator.id,
    )
    session.add(event)
    session.flush()
    return event


def get_event(session: Session, event_id: int) -> Event:
    stmt = (
        select(Event)
        .where(Event.id == event_id)
        .options(selectinload(Event.creator))
    )
    event = session.scalars(stmt).first()
    if event is None:
        raise NotFoundError("Event not found")
    return event


def _event_search_clause(search: str | None):
    if not search:
        return None
    return or_(
        Event.title.icontains(search, autoescape=True),
        Event.description.icontains(search, autoescape=True),
        Event.location.icontains(search, autoescape=True),
    )


def published_event_filters(
    *, category: EventCategory | None = None, search: str | None = None
) -> list:
    filters = [Event.is_published.is_(True)]
    if category is not None:
        filters.append(Event.category == category)
    clause = _event_search_clause(search)
    if clause is not None:
        filters.append(clause)
    return filters


def list_published_events(
    session: Session,
    *,
    category: EventCategory | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 12,
) -> tuple[Sequence[Event], int]:
    """Return one page of the public catalog and the total match count."""
    if page < 1:
        raise ValidationError("Page must be at least 1")
    if limit < 1:
        raise ValidationError("Limit must be at least 1")
    filters = published_event_filters(category=category, search=search)

    count_stmt = select(func.count()).select_from(Event)
    for condition in filters:
        count_stmt = count_stmt.where(condition)
    total = session.scalar(count_stmt) or 0
    offset = (page - 1) * limit
    if offset >= total:
        return [], total

    stmt = (
        select(Event)
        .options(selectinload(Event.creator))
        .order_by(Event.start_date.asc(), Event.id.asc())
        .offset(offset)
        .limit(limit)
    )
    for condition in filters:
        stmt = stmt.where(condition)
    return session.scalars(stmt).all(), total


def list_events_by_creator(session: Session, creator_id: str) -> Sequence[Event]:
    stmt = (
        select(Event)
        .where(Event.creator_id == creator_id)
        .options(selectinload(Event.creator))
        .order_by(Event.start_date.asc(), Event.id.asc())
    )
    return session.scalars(stmt).all()


def list_rsvps_for_user(session: Session, user_id: str) -> Sequence[RSVP]:
    stmt = (
        select(RSVP)
        .join(RSVP.event)
        .where(RSVP.user_id == user_id)
        .options(
            selectinload(RSVP.event).selectinload(Event.creator),
            selectinload(RSVP.user),
        )
        .order_by(Event.start_date.asc(), RSVP.id.asc())
    )
    return session.scalars(stmt).all()


def rsvp_counts(session: Session, event_ids: Iterable[int]) -> dict[int, int]:
    """Return the number of RSVPs per event id, zero for events without any."""
    ids = list(dict.fromkeys(event_ids))
    if not ids:
        return {}
    stmt = (
        select(RSVP.event_id, func.count(RSVP.id))
        .where(RSVP.event_id.in_(ids))
        .group_by(RSVP.event_id)
    )
    counts = {event_id: 0 for event_id in ids}
    for event_id, count in session.execute(stmt).all():
        counts[event_id] = count
    return counts


def rsvp_status_counts(session: Session, event_id: int) -> dict[str, int]:
    stmt = (
        select(RSVP.status, func.count(RSVP.id))
        .where(RSVP.event_id == event_id)
        .group_by(RSVP.status)
    )
    counts = {status.value: 0 for status in RSVPStatus}
    for status, count in session.execute(stmt).all():
        counts[RSVPStatus(status).value] = count
    return counts


def has_invitation(session: Session, event_id: int, user_id: str) -> bool:
    stmt = select(Invitation.id).where(
        Invitation.event_id == event_id, Invitation.user_id == user_id
    )
    return session.scalar(stmt) is not None


def get_user_rsvp(session: Session, event_id: int, user_id: str) -> RSVP | None:
    stmt = select(RSVP).where(RSVP.event_id == event_id, RSVP.user_id == user_id)
    return session.scalars(stmt).first()


def can_view_event(session: Session, event: Event, caller: Identity | None) -> bool:
    if event.is_published:
        return True
    if caller is None:
        return False
    if event.creator_id == caller.id:
        return True
    if has_invitation(session, event.id, caller.id):
        return True
    return get_user_rsvp(session, event.id, caller.id) is not None


def get_visible_event(
    session: Session, event_id: int, caller: Identity | None
) -> Event:
    """Fetch an event, hiding unpublished ones from callers without access."""
    event = get_event(session, event_id)
    if not can_view_event(session, event, caller):
        raise NotFoundError("Event not found")
    return event


def can_rsvp(session: Session, event: Event, caller: Identity) -> bool:
    if event.creator_id == caller.id:
        return True
    if event.is_private or not event.is_published:
        return has_invitation(session, event.id, caller.id)
    return True


def _going_count(session: Session, event_id: int, *, exclude_user_id: str) -> int:
    stmt = select(func.count(RSVP.id)).where(
        RSVP.event_id == event_id,
        RSVP.status == RSVPStatus.GOING,
        RSVP.user_id != exclude_user_id,
    )
    return session.scalar(stmt) or 0


def upsert_rsvp(
    session: Session,
    *,
    event_id: int,
    caller: Identity,
    status: RSVPStatus | str | None,
    now: datetime | None = None,
) -> tuple[RSVP, bool]:
    """Create or update the caller's RSVP for an event.

    Returns the RSVP and whether it was newly created. One RSVP exists per
    (event, user); GOING respects ``max_attendees`` and private events need
    an invitation.
    """
    normalized_status = parse_rsvp_status(status)
    event = get_visible_event(session, event_id, caller)
    if not can_rsvp(session, event, caller):
        raise ForbiddenError("An invitation is required to RSVP to this event")
    if event.end_date < (now or _now()):
        raise ValidationError("This event has already ended")

    if normalized_status is RSVPStatus.GOING and event.max_attendees is not None:
        going = _going_count(session, event.id, exclude_user_id=caller.id)
        if going >= event.max_attendees:
            raise EventFullError

    rsvp = get_user_rsvp(session, event.id, caller.id)
    created = rsvp is None
    if created:
        rsvp = RSVP(event=event, user_id=caller.id, status=normalized_status)
    else:
        rsvp.status = normalized_status
        rsvp.updated_at = _now()
    session.add(rsvp)
    session.flush()
    return rsvp, created


def withdraw_rsvp(session: Session, *, event_id: int, caller: Identity) -> None:
    rsvp = get_user_rsvp(session, event_id, caller.id)
    if rsvp is None:
        raise NotFoundError("RSVP not found")
    session.delete(rsvp)
    session.flush()


def _require_creator(event: Event, caller: Identity) -> None:
    if event.creator_id != caller.id:
        raise ForbiddenError("Only the event creator can do that")


def update_event_flags(
    session: Session,
    *,
    event_id: int,
    caller: Identity,
    is_published: bool | None = None,
    is_private: bool | None = None,
) -> Event:
    """Toggle publication and privacy; every other field stays as created."""
    event = get_event(session, event_id)
    _require_creator(event, caller)
    if is_published is None and is_private is None:
        raise ValidationError("Nothing to update")
    if is_published is not None:
        event.is_published = bool(is_published)
    if is_private is not None:
        event.is_private = bool(is_private)
    event.updated_at = _now()
    session.add(event)
    session.flush()
    return event


def invite_user(
    session: Session,
    *,
    event_id: int,
    caller: Identity,
    user_id: str | None,
) -> tuple[Invitation, bool]:
    if _is_blank(user_id):
        raise ValidationError("Missing required fields")
    event = get_event(session, event_id)
    _require_creator(event, caller)
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    stmt = select(Invitation).where(
        Invitation.event_id == event.id, Invitation.user_id == user.id
    )
    existing = session.scalars(stmt).first()
    if existing is not None:
        return existing, False
    invitation = Invitation(event=event, user=user)
    session.add(invitation)
    session.flush()
    return invitation, True


def count_upcoming_rsvps(
    rsvps: Iterable[RSVP], *, now: datetime | None = None
) -> int:
    reference = now or _now()
    return sum(1 for rsvp in rsvps if rsvp.event.start_date > reference)

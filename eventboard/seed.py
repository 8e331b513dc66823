"""Development helpers for populating fake users, events, and RSVPs."""

from __future__ import annotations

import random
import secrets
import uuid
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .crud import Identity, create_event, upsert_rsvp
from .database import get_session
from .errors import EventBoardError
from .models import AuthSession, EventCategory, RSVPStatus, User
from .storage import init_db
from .utils import utcnow

SEED_SESSION_DAYS = 30

_event_types = {
    EventCategory.CONCERT: ["Live Set", "Unplugged Night", "Summer Concert"],
    EventCategory.SHOW: ["Comedy Show", "Talent Show", "Magic Show"],
    EventCategory.OPERA: ["Opera Evening", "Aria Recital"],
    EventCategory.THEATER: ["Play Reading", "Improv Night"],
    EventCategory.CONFERENCE: ["Summit", "DevConf", "Forum"],
    EventCategory.WORKSHOP: ["Workshop", "Hack Day", "Masterclass"],
    EventCategory.TEAMBUILDING: ["Offsite", "Escape Room", "Team Retreat"],
    EventCategory.BIRTHDAY: ["Birthday Party", "Surprise Party"],
    EventCategory.WEDDING: ["Wedding", "Rehearsal Dinner"],
    EventCategory.CORPORATE: ["All Hands", "Quarterly Review", "Launch Party"],
    EventCategory.OTHER: ["Meetup", "Hangout", "Picnic"],
}
_rsvp_statuses = [
    RSVPStatus.GOING,
    RSVPStatus.GOING,
    RSVPStatus.GOING,
    RSVPStatus.MAYBE,
    RSVPStatus.MAYBE,
    RSVPStatus.NOT_GOING,
]


def seed_fake_data(
    *,
    user_count: int = 5,
    max_events_per_user: int = 3,
    max_rsvps_per_event: int = 4,
    published_percentage: int = 80,
    private_percentage: int = 10,
) -> dict:
    """Populate the database with synthetic users, events, and RSVPs.

    Every seeded user gets a session token so the JSON API can be exercised
    locally without an identity provider.
    """
    if user_count < 1:
        raise ValueError("user_count must be >= 1")
    if max_events_per_user < 0:
        raise ValueError("max_events_per_user must be >= 0")
    if max_rsvps_per_event < 0:
        raise ValueError("max_rsvps_per_event must be >= 0")
    if not 0 <= published_percentage <= 100:
        raise ValueError("published_percentage must be between 0 and 100")
    if not 0 <= private_percentage <= 100:
        raise ValueError("private_percentage must be between 0 and 100")

    init_db()
    fake = Faker()
    stats: dict = {"users": 0, "events": 0, "rsvps": 0, "tokens": {}}

    with get_session() as session:
        identities = []
        for _ in range(user_count):
            identity, token = _create_user(session, fake)
            identities.append(identity)
            stats["users"] += 1
            stats["tokens"][identity.email] = token

        for identity in identities:
            for _ in range(random.randint(0, max_events_per_user)):
                event = _create_event(
                    session,
                    fake,
                    creator=identity,
                    published_percentage=published_percentage,
                    private_percentage=private_percentage,
                )
                stats["events"] += 1
                stats["rsvps"] += _create_rsvps(
                    session,
                    event_id=event.id,
                    candidates=[i for i in identities if i.id != identity.id],
                    max_rsvps=max_rsvps_per_event,
                )

    return stats


def _create_user(session: Session, fake: Faker) -> tuple[Identity, str]:
    user = User(
        id=str(uuid.uuid4()),
        name=fake.name(),
        email=f"{uuid.uuid4().hex[:8]}.{fake.free_email()}",
    )
    token = secrets.token_urlsafe(32)
    session.add(user)
    session.add(
        AuthSession(
            token=token,
            user=user,
            expires_at=utcnow() + timedelta(days=SEED_SESSION_DAYS),
        )
    )
    session.flush()
    return Identity(id=user.id, name=user.name, email=user.email), token


def _random_start_time() -> datetime:
    day_offset = random.randint(1, 60)
    minute_offset = random.randint(0, 23 * 60)
    return utcnow() + timedelta(days=day_offset, minutes=minute_offset)


def _create_event(
    session: Session,
    fake: Faker,
    *,
    creator: Identity,
    published_percentage: int,
    private_percentage: int,
):
    category = random.choice(list(EventCategory))
    start = _random_start_time()
    return create_event(
        session,
        creator=creator,
        title=f"{fake.city()} {random.choice(_event_types[category])}",
        description="\n\n".join(fake.paragraphs(nb=2)),
        start_date=start,
        end_date=start + timedelta(hours=random.randint(1, 6)),
        location=fake.address().replace("\n", ", "),
        category=category,
        max_attendees=random.choice([None, None, 10, 25, 50]),
        is_private=random.randint(1, 100) <= private_percentage,
        is_published=random.randint(1, 100) <= published_percentage,
    )


def _create_rsvps(
    session: Session,
    *,
    event_id: int,
    candidates: list[Identity],
    max_rsvps: int,
) -> int:
    if max_rsvps <= 0 or not candidates:
        return 0
    total = random.randint(0, min(max_rsvps, len(candidates)))
    created = 0
    for identity in random.sample(candidates, total):
        try:
            upsert_rsvp(
                session,
                event_id=event_id,
                caller=identity,
                status=random.choice(_rsvp_statuses),
            )
        except EventBoardError:
            # Private or unpublished events reject uninvited guests; skip them.
            continue
        created += 1
    return created

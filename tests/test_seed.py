from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from eventboard import api, database
from eventboard.models import AuthSession, Event, RSVP, User
from eventboard.seed import seed_fake_data


def test_seed_fake_data_populates_users_events_and_rsvps():
    stats = seed_fake_data(
        user_count=4,
        max_events_per_user=2,
        max_rsvps_per_event=3,
        published_percentage=100,
        private_percentage=0,
    )

    session = database.SessionLocal.session_factory()
    try:
        assert session.scalar(select(func.count(User.id))) == 4
        assert session.scalar(select(func.count(AuthSession.token))) == 4
        assert session.scalar(select(func.count(Event.id))) == stats["events"]
        assert session.scalar(select(func.count(RSVP.id))) == stats["rsvps"]
    finally:
        session.close()
    assert stats["users"] == 4
    assert len(stats["tokens"]) == 4


def test_seeded_tokens_authenticate_against_the_api():
    stats = seed_fake_data(user_count=1, max_events_per_user=0)
    token = next(iter(stats["tokens"].values()))

    with TestClient(api.app) as client:
        response = client.get(
            "/dashboard", headers={"Authorization": f"Bearer {token}"}
        )

    assert response.status_code == 200
    assert response.json()["stats"] == {"myEvents": 0, "myRsvps": 0, "upcomingRsvps": 0}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"user_count": 0},
        {"max_events_per_user": -1},
        {"published_percentage": 101},
        {"private_percentage": -5},
    ],
)
def test_seed_fake_data_rejects_bad_arguments(kwargs):
    with pytest.raises(ValueError):
        seed_fake_data(**kwargs)

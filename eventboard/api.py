"""FastAPI application for EventBoard."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
import tomllib

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .crud import (
    Identity,
    count_upcoming_rsvps,
    create_event,
    get_visible_event,
    identity_for_token,
    invite_user,
    list_events_by_creator,
    list_published_events,
    list_rsvps_for_user,
    parse_category_filter,
    rsvp_counts,
    rsvp_status_counts,
    update_event_flags,
    upsert_rsvp,
    withdraw_rsvp,
)
from .database import SessionLocal
from .errors import AuthenticationError, EventBoardError
from .models import Event, Invitation, RSVP, User
from .storage import init_db
from .utils import isoformat_utc, page_count

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")

EVENTS_PER_PAGE = settings.events_per_page
MAX_EVENTS_PER_PAGE = settings.max_events_per_page


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("eventboard")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="EventBoard", version=APP_VERSION, lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _get_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization") or ""
    if not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def get_caller(request: Request, db: Session = Depends(get_db)) -> Identity | None:
    """Resolve the request-scoped caller identity, if any."""
    return identity_for_token(db, _get_bearer_token(request))


def require_caller(caller: Identity | None = Depends(get_caller)) -> Identity:
    if caller is None:
        raise AuthenticationError
    return caller


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=status_code)


@app.exception_handler(EventBoardError)
async def eventboard_error_handler(request: Request, exc: EventBoardError):
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Something went wrong."
    return _error_response(exc.status_code, detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info(
        "Rejected malformed request %s %s: %s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return _error_response(400, "Invalid request")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(
        "Integrity error on %s %s: %s",
        request.method,
        request.url.path,
        getattr(exc, "orig", exc),
    )
    return _error_response(409, "That change conflicts with existing data. Please retry.")


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    if "database is locked" in raw.lower():
        logger.error(
            "SQLite database is locked while handling %s %s",
            request.method,
            request.url.path,
        )
        return _error_response(
            503,
            "The database is busy at the moment. Please wait a few seconds and try again.",
        )
    logger.error(
        "Operational database error on %s %s: %s",
        request.method,
        request.url.path,
        raw,
    )
    return _error_response(500, "Internal server error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    return _error_response(500, "Internal server error")


class _CamelPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCreatePayload(_CamelPayload):
    title: str | None = None
    description: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    category: str | None = None
    image: str | None = None
    max_attendees: int | str | None = None
    is_private: bool | None = None
    is_published: bool | None = None


class EventFlagsPayload(_CamelPayload):
    is_published: bool | None = None
    is_private: bool | None = None


class RSVPPayload(_CamelPayload):
    status: str | None = None


class InvitationPayload(_CamelPayload):
    user_id: str | None = None


def _serialize_user(user: User | None):
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def _serialize_event(
    event: Event,
    *,
    rsvp_count: int | None = None,
    include_rsvps: Sequence[RSVP] | None = None,
    status_counts: dict[str, int] | None = None,
):
    payload = {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "startDate": isoformat_utc(event.start_date),
        "endDate": isoformat_utc(event.end_date),
        "location": event.location,
        "category": event.category.value,
        "image": event.image,
        "maxAttendees": event.max_attendees,
        "isPrivate": event.is_private,
        "isPublished": event.is_published,
        "creatorId": event.creator_id,
        "createdAt": isoformat_utc(event.created_at),
        "updatedAt": isoformat_utc(event.updated_at),
        "creator": _serialize_user(event.creator),
    }
    if rsvp_count is not None:
        payload["_count"] = {"rsvps": rsvp_count}
    if include_rsvps is not None:
        payload["rsvps"] = [_serialize_rsvp(r) for r in include_rsvps]
    if status_counts is not None:
        payload["rsvpStatusCounts"] = status_counts
    return payload


def _serialize_rsvp(
    rsvp: RSVP,
    *,
    event_payload: dict | None = None,
    include_user: bool = False,
):
    payload = {
        "id": rsvp.id,
        "eventId": rsvp.event_id,
        "userId": rsvp.user_id,
        "status": rsvp.status.value,
        "createdAt": isoformat_utc(rsvp.created_at),
        "updatedAt": isoformat_utc(rsvp.updated_at),
    }
    if event_payload is not None:
        payload["event"] = event_payload
    if include_user:
        payload["user"] = _serialize_user(rsvp.user)
    return payload


def _serialize_invitation(invitation: Invitation):
    return {
        "id": invitation.id,
        "eventId": invitation.event_id,
        "userId": invitation.user_id,
        "createdAt": isoformat_utc(invitation.created_at),
    }


def _serialize_events_with_counts(db: Session, events: Sequence[Event]) -> list[dict]:
    counts = rsvp_counts(db, (event.id for event in events))
    return [
        _serialize_event(event, rsvp_count=counts.get(event.id, 0)) for event in events
    ]


def _serialize_rsvps_with_events(db: Session, rsvps: Sequence[RSVP]) -> list[dict]:
    counts = rsvp_counts(db, (rsvp.event_id for rsvp in rsvps))
    return [
        _serialize_rsvp(
            rsvp,
            event_payload=_serialize_event(
                rsvp.event, rsvp_count=counts.get(rsvp.event_id, 0)
            ),
            include_user=True,
        )
        for rsvp in rsvps
    ]


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.post("/events", status_code=201)
def api_create_event(
    payload: EventCreatePayload,
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    event = create_event(
        db,
        creator=caller,
        title=payload.title,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        location=payload.location,
        category=payload.category,
        max_attendees=payload.max_attendees,
        image=payload.image,
        is_private=payload.is_private,
        is_published=payload.is_published,
    )
    logger.info("Event %s (%s) created by %s", event.id, event.title, caller.id)
    return {
        "message": "Event created successfully",
        "event": _serialize_event(event, include_rsvps=event.rsvps),
    }


@app.get("/events")
def api_list_events(
    category: str | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    category_filter = parse_category_filter(category)
    per_page = min(limit or EVENTS_PER_PAGE, MAX_EVENTS_PER_PAGE)
    events, total = list_published_events(
        db,
        category=category_filter,
        search=search,
        page=page,
        limit=per_page,
    )
    return {
        "events": _serialize_events_with_counts(db, events),
        "pagination": {
            "page": page,
            "limit": per_page,
            "total": total,
            "pages": page_count(total, per_page),
        },
    }


@app.get("/events/my-events")
def api_my_events(
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    events = list_events_by_creator(db, caller.id)
    return {"events": _serialize_events_with_counts(db, events)}


@app.get("/events/{event_id}")
def api_get_event(
    event_id: int,
    caller: Identity | None = Depends(get_caller),
    db: Session = Depends(get_db),
):
    event = get_visible_event(db, event_id, caller)
    status_counts = rsvp_status_counts(db, event.id)
    return {
        "event": _serialize_event(
            event,
            rsvp_count=sum(status_counts.values()),
            status_counts=status_counts,
        )
    }


@app.patch("/events/{event_id}")
def api_update_event_flags(
    event_id: int,
    payload: EventFlagsPayload,
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    event = update_event_flags(
        db,
        event_id=event_id,
        caller=caller,
        is_published=payload.is_published,
        is_private=payload.is_private,
    )
    logger.info(
        "Event %s flags updated by %s (published=%s, private=%s)",
        event.id,
        caller.id,
        event.is_published,
        event.is_private,
    )
    counts = rsvp_counts(db, [event.id])
    return {
        "message": "Event updated successfully",
        "event": _serialize_event(event, rsvp_count=counts.get(event.id, 0)),
    }


@app.post("/events/{event_id}/rsvp")
def api_upsert_rsvp(
    event_id: int,
    payload: RSVPPayload,
    response: Response,
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    rsvp, created = upsert_rsvp(
        db, event_id=event_id, caller=caller, status=payload.status
    )
    response.status_code = 201 if created else 200
    logger.info(
        "RSVP %s for event %s by %s set to %s",
        "created" if created else "updated",
        event_id,
        caller.id,
        rsvp.status.value,
    )
    return {
        "message": "RSVP saved" if created else "RSVP updated",
        "rsvp": _serialize_rsvp(rsvp),
    }


@app.delete("/events/{event_id}/rsvp", status_code=204)
def api_withdraw_rsvp(
    event_id: int,
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    withdraw_rsvp(db, event_id=event_id, caller=caller)
    logger.info("RSVP for event %s withdrawn by %s", event_id, caller.id)
    return Response(status_code=204)


@app.post("/events/{event_id}/invitations")
def api_invite_user(
    event_id: int,
    payload: InvitationPayload,
    response: Response,
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    invitation, created = invite_user(
        db, event_id=event_id, caller=caller, user_id=payload.user_id
    )
    response.status_code = 201 if created else 200
    if created:
        logger.info(
            "User %s invited to event %s by %s",
            invitation.user_id,
            event_id,
            caller.id,
        )
    return {
        "message": "Invitation sent" if created else "User already invited",
        "invitation": _serialize_invitation(invitation),
    }


@app.get("/rsvps/my-rsvps")
def api_my_rsvps(
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    rsvps = list_rsvps_for_user(db, caller.id)
    return {"rsvps": _serialize_rsvps_with_events(db, rsvps)}


@app.get("/dashboard")
def api_dashboard(
    caller: Identity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    events = list_events_by_creator(db, caller.id)
    rsvps = list_rsvps_for_user(db, caller.id)
    return {
        "stats": {
            "myEvents": len(events),
            "myRsvps": len(rsvps),
            "upcomingRsvps": count_upcoming_rsvps(rsvps),
        },
        "events": _serialize_events_with_counts(db, events),
        "rsvps": _serialize_rsvps_with_events(db, rsvps),
    }

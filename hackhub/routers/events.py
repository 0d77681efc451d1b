import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from hackhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.dates import as_utc, utcnow
from hackhub.core.deps import get_db
from hackhub.core.permissions import is_event_organizer, require_organizer
from hackhub.core.responses import envelope, pagination, validation_error
from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.event import Event, EventMode
from hackhub.models.team import Team, TeamMember
from hackhub.models.user import User
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.schemas.event import EventCreate, EventRead, EventUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_event_exists(db: Session, event_id: int, active_only: bool = False) -> Event:
    event = db.get(Event, event_id)
    if not event or (active_only and not event.is_active):
        detail = "Event not found or inactive" if active_only else "Event not found"
        raise HTTPException(status_code=404, detail=detail)
    return event


def _ensure_owner(event: Event, user: User, message: str) -> None:
    if not is_event_organizer(user, event):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


@router.post("", response_model=ApiResponse[EventRead], status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = Event(organizer_id=organizer.id, **payload.model_dump())
    db.add(event)
    _commit(db)
    db.refresh(event)

    logger.info("Organizer %s created event %s", organizer.id, event.id)
    return envelope("Event created successfully", event)


@router.get("", response_model=ApiResponse[list[EventRead]])
def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    q = db.query(Event).filter(Event.is_active.is_(True))
    total = q.count()
    events = (
        q.order_by(Event.start_date.desc(), Event.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return envelope("Events retrieved successfully", events, pagination=pagination(page, limit, total))


@router.get("/search", response_model=ApiResponse[list[EventRead]])
def search_events(
    q: str = Query(..., min_length=2, max_length=100),
    mode: EventMode | None = None,
    theme: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    term = f"%{q.strip()}%"
    query = db.query(Event).filter(
        Event.is_active.is_(True),
        or_(Event.name.ilike(term), Event.theme.ilike(term), Event.description.ilike(term)),
    )
    if mode is not None:
        query = query.filter(Event.mode == mode)
    if theme:
        query = query.filter(Event.theme.ilike(f"%{theme}%"))

    total = query.count()
    events = (
        query.order_by(Event.start_date.desc(), Event.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return envelope(
        f"Found {total} event(s) matching '{q.strip()}'",
        events,
        pagination=pagination(page, limit, total),
    )


@router.get("/upcoming", response_model=ApiResponse[list[EventRead]])
def upcoming_events(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    events = (
        db.query(Event)
        .filter(Event.is_active.is_(True), Event.start_date > utcnow())
        .order_by(Event.start_date.asc(), Event.id.asc())
        .limit(limit)
        .all()
    )
    return envelope("Upcoming events retrieved successfully", events)


@router.get("/organizer/{organizer_id}", response_model=ApiResponse[list[EventRead]])
def events_by_organizer(
    organizer_id: int,
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    events = (
        db.query(Event)
        .filter(Event.organizer_id == organizer_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .all()
    )
    return envelope("Organizer events retrieved successfully", events)


@router.get("/{event_id}", response_model=ApiResponse[EventRead])
def get_event(event_id: int, db: Session = Depends(get_db)):
    event = _ensure_event_exists(db, event_id)
    return envelope("Event retrieved successfully", event)


@router.get("/{event_id}/participant")
def get_event_for_participant(
    event_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    event = _ensure_event_exists(db, event_id, active_only=True)

    enrollment = (
        db.query(Enrollment)
        .filter(Enrollment.event_id == event.id, Enrollment.user_id == me.id)
        .first()
    )
    row = (
        db.query(Team, TeamMember.role)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .filter(TeamMember.event_id == event.id, TeamMember.user_id == me.id)
        .first()
    )

    data = {
        "event": EventRead.model_validate(event).model_dump(),
        "enrollment": None,
        "team": None,
        "has_started": utcnow() >= as_utc(event.start_date),
    }
    if enrollment is not None:
        data["enrollment"] = {
            "id": enrollment.id,
            "status": enrollment.status.value,
            "enrolled_at": enrollment.enrolled_at,
            "team_id": enrollment.team_id,
        }
    if row is not None:
        team, role = row
        data["team"] = {"id": team.id, "name": team.name, "role": role.value}

    return envelope("Event retrieved successfully", data)


@router.patch("/{event_id}", response_model=ApiResponse[EventRead])
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = _ensure_event_exists(db, event_id)
    _ensure_owner(event, organizer, "You can only update your own events")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    start = changes.get("start_date", event.start_date)
    end = changes.get("end_date", event.end_date)
    if as_utc(end) <= as_utc(start):
        raise validation_error([{"field": "end_date", "message": "End date must be after start date"}])

    for field, value in changes.items():
        setattr(event, field, value)
    _commit(db)
    db.refresh(event)

    return envelope("Event updated successfully", event)


@router.delete("/{event_id}", response_model=MessageResponse)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = _ensure_event_exists(db, event_id)
    _ensure_owner(event, organizer, "You can only delete your own events")

    # soft delete: the row stays for history, enrollments are cancelled
    event.is_active = False
    cancelled = (
        db.query(Enrollment)
        .filter(Enrollment.event_id == event.id, Enrollment.status == EnrollmentStatus.ENROLLED)
        .update({Enrollment.status: EnrollmentStatus.CANCELLED}, synchronize_session="fetch")
    )
    _commit(db)

    logger.info("Event %s soft-deleted by %s, %s enrollment(s) cancelled", event_id, organizer.id, cancelled)
    return envelope("Event deleted successfully. All enrollments have been cancelled.")

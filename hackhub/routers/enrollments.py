import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hackhub.core.config import ENROLLMENT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.dates import has_started, utcnow
from hackhub.core.deps import get_db
from hackhub.core.permissions import is_event_organizer, require_organizer, require_participant
from hackhub.core.responses import envelope, pagination
from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.event import Event
from hackhub.models.team import Team, TeamMember
from hackhub.models.user import User
from hackhub.schemas.common import ApiResponse
from hackhub.schemas.enrollment import (
    EnrollmentOut,
    EnrollmentTeamUpdate,
    EnrollmentWithEvent,
    EnrollmentWithUser,
)
from hackhub.schemas.event import EnrollmentStats
from hackhub.services.enrollments import current_team_id, get_enrollment

logger = logging.getLogger(__name__)

router = APIRouter()

ALREADY_ENROLLED = "You are already enrolled in this event"


def _ensure_owned_event(db: Session, event_id: int, organizer: User) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not is_event_organizer(organizer, event):
        raise HTTPException(
            status_code=403,
            detail="You can only view enrollments for your own events",
        )
    return event


@router.post(
    "/{event_id}/enroll",
    response_model=ApiResponse[EnrollmentOut],
    status_code=status.HTTP_201_CREATED,
)
def enroll(
    event_id: int,
    response: Response,
    db: Session = Depends(get_db),
    me: User = Depends(require_participant),
):
    event = db.get(Event, event_id)
    if not event or not event.is_active:
        raise HTTPException(status_code=404, detail="Event not found or inactive")

    if has_started(event.start_date):
        raise HTTPException(
            status_code=400,
            detail="Cannot enroll to an event that has already started",
        )

    existing = get_enrollment(db, event.id, me.id)
    if existing is not None:
        if existing.status == EnrollmentStatus.ENROLLED:
            raise HTTPException(status_code=409, detail=ALREADY_ENROLLED)
        if existing.status == EnrollmentStatus.WAITLISTED:
            raise HTTPException(status_code=409, detail="You are already on the waitlist for this event")

        existing.status = EnrollmentStatus.ENROLLED
        existing.enrolled_at = utcnow()
        # membership may have changed while the enrollment was cancelled
        existing.team_id = current_team_id(db, event.id, me.id)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(existing)

        logger.info("User %s re-enrolled in event %s", me.id, event.id)
        response.status_code = status.HTTP_200_OK
        return envelope("Successfully re-enrolled to the event", existing)

    enrollment = Enrollment(event_id=event.id, user_id=me.id, status=EnrollmentStatus.ENROLLED)
    db.add(enrollment)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=ALREADY_ENROLLED)

    db.refresh(enrollment)
    logger.info("User %s enrolled in event %s", me.id, event.id)
    return envelope("Successfully enrolled to the event", enrollment)


@router.post("/{event_id}/cancel", response_model=ApiResponse[EnrollmentOut])
def cancel_enrollment(
    event_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(require_participant),
):
    enrollment = get_enrollment(db, event_id, me.id)
    if enrollment is None:
        raise HTTPException(status_code=404, detail="You are not enrolled in this event")

    if enrollment.status == EnrollmentStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Enrollment is already cancelled")

    event = db.get(Event, event_id)
    if has_started(event.start_date):
        raise HTTPException(
            status_code=400,
            detail="Cannot cancel enrollment for an event that has already started",
        )

    # team_id is kept as history; team membership is managed via /teams
    enrollment.status = EnrollmentStatus.CANCELLED
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(enrollment)

    logger.info("User %s cancelled enrollment in event %s", me.id, event_id)
    return envelope("Event enrollment cancelled successfully", enrollment)


@router.get("/my/enrollments", response_model=ApiResponse[list[EnrollmentWithEvent]])
def my_enrollments(
    enrollment_status: EnrollmentStatus = Query(EnrollmentStatus.ENROLLED, alias="status"),
    db: Session = Depends(get_db),
    me: User = Depends(require_participant),
):
    rows = (
        db.query(Enrollment, Event, Team.name)
        .join(Event, Event.id == Enrollment.event_id)
        .outerjoin(Team, Team.id == Enrollment.team_id)
        .filter(Enrollment.user_id == me.id, Enrollment.status == enrollment_status)
        .order_by(Event.start_date.asc())
        .all()
    )

    data = [
        {
            **EnrollmentOut.model_validate(enrollment).model_dump(),
            "event_name": event.name,
            "start_date": event.start_date,
            "end_date": event.end_date,
            "team_name": team_name,
        }
        for enrollment, event, team_name in rows
    ]
    return envelope("Enrollments retrieved successfully", data)


@router.get("/{event_id}/enrollments", response_model=ApiResponse[list[EnrollmentWithUser]])
def event_enrollments(
    event_id: int,
    enrollment_status: EnrollmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(ENROLLMENT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = _ensure_owned_event(db, event_id, organizer)

    q = db.query(Enrollment).filter(Enrollment.event_id == event.id)
    if enrollment_status is not None:
        q = q.filter(Enrollment.status == enrollment_status)
    total = q.count()

    rows = (
        q.join(User, User.id == Enrollment.user_id)
        .outerjoin(Team, Team.id == Enrollment.team_id)
        .with_entities(Enrollment, User.name, User.email, Team.name)
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = [
        {
            **EnrollmentOut.model_validate(enrollment).model_dump(),
            "user_name": user_name,
            "user_email": user_email,
            "team_name": team_name,
        }
        for enrollment, user_name, user_email, team_name in rows
    ]
    return envelope(
        "Event enrollments retrieved successfully",
        data,
        pagination=pagination(page, limit, total),
    )


@router.get("/{event_id}/enrollment-stats", response_model=ApiResponse[EnrollmentStats])
def enrollment_stats(
    event_id: int,
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = _ensure_owned_event(db, event_id, organizer)

    by_status = dict(
        db.query(Enrollment.status, func.count(Enrollment.id))
        .filter(Enrollment.event_id == event.id)
        .group_by(Enrollment.status)
        .all()
    )
    total_teams = db.query(func.count(Team.id)).filter(Team.event_id == event.id).scalar() or 0
    total_members = (
        db.query(func.count(TeamMember.id)).filter(TeamMember.event_id == event.id).scalar() or 0
    )

    enrolled = by_status.get(EnrollmentStatus.ENROLLED, 0)
    cancelled = by_status.get(EnrollmentStatus.CANCELLED, 0)
    waitlisted = by_status.get(EnrollmentStatus.WAITLISTED, 0)
    data = {
        "event_id": event.id,
        "enrolled": enrolled,
        "cancelled": cancelled,
        "waitlisted": waitlisted,
        "total": enrolled + cancelled + waitlisted,
        "total_teams": total_teams,
        "average_team_size": round(total_members / total_teams, 2) if total_teams else 0.0,
    }
    return envelope("Enrollment statistics retrieved successfully", data)


@router.patch("/{event_id}/enrollment/team", response_model=ApiResponse[EnrollmentOut])
def update_enrollment_team(
    event_id: int,
    payload: EnrollmentTeamUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(require_participant),
):
    enrollment = get_enrollment(db, event_id, me.id)
    if enrollment is None or enrollment.status != EnrollmentStatus.ENROLLED:
        raise HTTPException(status_code=404, detail="You are not enrolled in this event")

    if payload.team_id is not None:
        team = db.query(Team).filter(Team.id == payload.team_id, Team.event_id == event_id).first()
        if not team:
            raise HTTPException(status_code=404, detail="Team not found for this event")
        is_member = (
            db.query(TeamMember.id)
            .filter(TeamMember.team_id == team.id, TeamMember.user_id == me.id)
            .first()
            is not None
        )
        if not is_member:
            raise HTTPException(status_code=403, detail="You are not a member of this team")

    enrollment.team_id = payload.team_id
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(enrollment)

    return envelope("Enrollment team updated successfully", enrollment)

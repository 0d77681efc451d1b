"""Keeps ``event_enrollments.team_id`` in step with team membership.

These helpers only stage changes on the session. The calling workflow owns
the commit, so a team write and its enrollment sync land together or not
at all.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.team import TeamMember

logger = logging.getLogger(__name__)


def get_enrollment(db: Session, event_id: int, user_id: int) -> Enrollment | None:
    stmt = select(Enrollment).where(
        Enrollment.event_id == event_id, Enrollment.user_id == user_id
    )
    return db.scalars(stmt).first()


def link_team(db: Session, event_id: int, user_id: int, team_id: int) -> Enrollment | None:
    """Point the user's enrollment for ``event_id`` at ``team_id``.

    A user with no enrollment row gets an Enrolled one. A Cancelled (or
    Waitlisted) enrollment is left alone.
    """
    enrollment = get_enrollment(db, event_id, user_id)
    if enrollment is None:
        enrollment = Enrollment(
            event_id=event_id,
            user_id=user_id,
            status=EnrollmentStatus.ENROLLED,
            team_id=team_id,
        )
        db.add(enrollment)
        logger.info("Auto-enrolled user %s in event %s via team %s", user_id, event_id, team_id)
        return enrollment

    if enrollment.status == EnrollmentStatus.ENROLLED:
        enrollment.team_id = team_id
    return enrollment


def current_team_id(db: Session, event_id: int, user_id: int) -> int | None:
    stmt = select(TeamMember.team_id).where(
        TeamMember.event_id == event_id, TeamMember.user_id == user_id
    )
    return db.scalars(stmt).first()


def unlink_team(db: Session, event_id: int, user_id: int) -> None:
    enrollment = get_enrollment(db, event_id, user_id)
    if enrollment is not None:
        enrollment.team_id = None


def unlink_all(db: Session, team_id: int) -> int:
    result = db.execute(
        update(Enrollment)
        .where(Enrollment.team_id == team_id)
        .values(team_id=None)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0

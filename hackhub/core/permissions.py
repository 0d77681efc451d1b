from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from hackhub.core.current_user import get_current_user
from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.event import Event
from hackhub.models.user import User, UserRole


def require_roles(*roles: UserRole):
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return dependency


require_participant = require_roles(UserRole.PARTICIPANT)
require_organizer = require_roles(UserRole.ORGANIZER)
require_organizer_or_judge = require_roles(UserRole.ORGANIZER, UserRole.JUDGE)


# Authorization predicates. Routers call these instead of re-deriving ownership.

def is_event_organizer(user: User, event: Event) -> bool:
    return user.role == UserRole.ORGANIZER and event.organizer_id == user.id


def can_judge(user: User, event: Event) -> bool:
    if user.role == UserRole.JUDGE:
        return True
    return is_event_organizer(user, event)


def is_enrolled(db: Session, user_id: int, event_id: int) -> bool:
    stmt = select(Enrollment.id).where(
        Enrollment.event_id == event_id,
        Enrollment.user_id == user_id,
        Enrollment.status == EnrollmentStatus.ENROLLED,
    )
    return db.execute(stmt).first() is not None


def can_view_event_feed(db: Session, user: User, event: Event) -> bool:
    if user.role == UserRole.JUDGE or is_event_organizer(user, event):
        return True
    return is_enrolled(db, user.id, event.id)

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hackhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.deps import get_db
from hackhub.core.responses import envelope, pagination
from hackhub.models.event import Event
from hackhub.models.team import Team, TeamMember, TeamRole
from hackhub.models.user import User
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.schemas.team import (
    MyTeam,
    TeamCreate,
    TeamDetail,
    TeamMembership,
    TeamRead,
    TeamSummary,
    TeamUpdate,
)
from hackhub.services import enrollments

logger = logging.getLogger(__name__)

router = APIRouter()

ALREADY_ON_TEAM = "You are already part of a team for this event"
NAME_TAKEN = "Team name already exists for this event"


def _ensure_team_exists(db: Session, team_id: int, lock: bool = False) -> Team:
    q = db.query(Team).filter(Team.id == team_id)
    if lock:
        # serializes concurrent joins on databases with row locks
        q = q.with_for_update()
    team = q.first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def _membership(db: Session, team_id: int, user_id: int) -> TeamMember | None:
    return (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )


def _team_for_event(db: Session, event_id: int, user_id: int) -> TeamMember | None:
    return (
        db.query(TeamMember)
        .filter(TeamMember.event_id == event_id, TeamMember.user_id == user_id)
        .first()
    )


def _member_count(db: Session, team_id: int) -> int:
    return db.query(func.count(TeamMember.id)).filter(TeamMember.team_id == team_id).scalar() or 0


def _name_taken(db: Session, event_id: int, name: str, exclude_team_id: int | None = None) -> bool:
    q = db.query(Team.id).filter(
        Team.event_id == event_id, func.lower(Team.name) == name.lower()
    )
    if exclude_team_id is not None:
        q = q.filter(Team.id != exclude_team_id)
    return q.first() is not None


def _require_leader(db: Session, team: Team, user: User, message: str) -> TeamMember:
    membership = _membership(db, team.id, user.id)
    if not membership or membership.role != TeamRole.LEADER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
    return membership


def _conflict_after_race(db: Session, event_id: int, user_id: int, name: str | None) -> HTTPException:
    # a unique constraint fired; report whichever rule the other request won
    if name is not None and _name_taken(db, event_id, name):
        return HTTPException(status_code=409, detail=NAME_TAKEN)
    return HTTPException(status_code=409, detail=ALREADY_ON_TEAM)


def _commit(db: Session, event_id: int, user_id: int, name: str | None = None) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _conflict_after_race(db, event_id, user_id, name)
    except Exception:
        db.rollback()
        raise


@router.post("", response_model=ApiResponse[TeamRead], status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    event = db.get(Event, payload.event_id)
    if not event or not event.is_active:
        raise HTTPException(status_code=404, detail="Event not found or inactive")

    if _team_for_event(db, event.id, me.id):
        raise HTTPException(status_code=409, detail=ALREADY_ON_TEAM)

    if _name_taken(db, event.id, payload.team_name):
        raise HTTPException(status_code=409, detail=NAME_TAKEN)

    team = Team(name=payload.team_name, event_id=event.id, created_by=me.id)
    db.add(team)
    try:
        db.flush()
        db.add(
            TeamMember(team_id=team.id, user_id=me.id, event_id=event.id, role=TeamRole.LEADER)
        )
        enrollments.link_team(db, event.id, me.id, team.id)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise _conflict_after_race(db, event.id, me.id, payload.team_name)
    except Exception:
        db.rollback()
        raise
    _commit(db, event.id, me.id, payload.team_name)

    db.refresh(team)
    logger.info("User %s created team %s (%s) for event %s", me.id, team.id, team.name, event.id)
    return envelope("Team created successfully", team)


@router.get("/my-teams", response_model=ApiResponse[list[MyTeam]])
def my_teams(
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    counts = (
        db.query(TeamMember.team_id, func.count(TeamMember.id).label("member_count"))
        .group_by(TeamMember.team_id)
        .subquery()
    )
    rows = (
        db.query(Team, Event.name, TeamMember.role, counts.c.member_count)
        .join(TeamMember, TeamMember.team_id == Team.id)
        .join(Event, Event.id == Team.event_id)
        .join(counts, counts.c.team_id == Team.id)
        .filter(TeamMember.user_id == me.id, Event.is_active.is_(True))
        .order_by(Team.created_at.desc(), Team.id.desc())
        .all()
    )

    data = [
        {
            **TeamRead.model_validate(team).model_dump(),
            "event_name": event_name,
            "my_role": role,
            "member_count": member_count,
        }
        for team, event_name, role, member_count in rows
    ]
    return envelope("User teams retrieved successfully", data)


@router.get("/event/{event_id}", response_model=ApiResponse[list[TeamSummary]])
def teams_for_event(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    if not db.get(Event, event_id):
        raise HTTPException(status_code=404, detail="Event not found")

    total = db.query(func.count(Team.id)).filter(Team.event_id == event_id).scalar() or 0

    member_stats = (
        db.query(
            TeamMember.team_id,
            func.count(TeamMember.id).label("total"),
            func.sum(case((TeamMember.role == TeamRole.LEADER, 1), else_=0)).label("leaders"),
        )
        .group_by(TeamMember.team_id)
        .subquery()
    )
    rows = (
        db.query(Team, User.name, member_stats.c.total, member_stats.c.leaders)
        .join(User, User.id == Team.created_by)
        .outerjoin(member_stats, member_stats.c.team_id == Team.id)
        .filter(Team.event_id == event_id)
        .order_by(Team.created_at.desc(), Team.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = []
    for team, creator_name, total_members, leaders in rows:
        total_members = total_members or 0
        leaders = leaders or 0
        data.append(
            {
                **TeamRead.model_validate(team).model_dump(),
                "creator_name": creator_name,
                "member_details": {
                    "total": total_members,
                    "leaders": leaders,
                    "members": total_members - leaders,
                },
            }
        )

    return envelope(
        "Teams retrieved successfully",
        data,
        pagination=pagination(page, limit, total),
    )


@router.get("/{team_id}", response_model=ApiResponse[TeamDetail])
def get_team(
    team_id: int,
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id)
    event = db.get(Event, team.event_id)

    leader_first = case((TeamMember.role == TeamRole.LEADER, 0), else_=1)
    rows = (
        db.query(TeamMember, User)
        .join(User, User.id == TeamMember.user_id)
        .filter(TeamMember.team_id == team.id)
        .order_by(leader_first, User.name)
        .all()
    )
    members = [
        {
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, user in rows
    ]

    data = {
        **TeamRead.model_validate(team).model_dump(),
        "event_name": event.name,
        "max_team_size": event.max_team_size,
        "members": members,
        "member_count": len(members),
    }
    return envelope("Team retrieved successfully", data)


@router.put("/{team_id}", response_model=ApiResponse[TeamRead])
def update_team(
    team_id: int,
    payload: TeamUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id)
    _require_leader(db, team, me, "Only team leader can update team details")

    if _name_taken(db, team.event_id, payload.team_name, exclude_team_id=team.id):
        raise HTTPException(status_code=409, detail=NAME_TAKEN)

    team.name = payload.team_name
    _commit(db, team.event_id, me.id, payload.team_name)

    db.refresh(team)
    return envelope("Team updated successfully", team)


@router.delete("/{team_id}", response_model=MessageResponse)
def delete_team(
    team_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id)
    _require_leader(db, team, me, "Only team leader can delete the team")

    cleared = enrollments.unlink_all(db, team.id)
    db.delete(team)
    _commit(db, team.event_id, me.id)

    logger.info("Team %s deleted by leader %s (%s enrollments unlinked)", team_id, me.id, cleared)
    return envelope("Team deleted successfully")


@router.post("/{team_id}/join", response_model=ApiResponse[TeamMembership])
def join_team(
    team_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id, lock=True)
    event = db.get(Event, team.event_id)
    if not event or not event.is_active:
        raise HTTPException(status_code=404, detail="Event not found or inactive")

    if _team_for_event(db, team.event_id, me.id):
        raise HTTPException(status_code=409, detail=ALREADY_ON_TEAM)

    count = _member_count(db, team.id)
    if event.max_team_size and count >= event.max_team_size:
        raise HTTPException(
            status_code=409,
            detail=f"Team is full. Maximum team size is {event.max_team_size}",
        )

    db.add(TeamMember(team_id=team.id, user_id=me.id, event_id=team.event_id, role=TeamRole.MEMBER))
    enrollments.link_team(db, team.event_id, me.id, team.id)
    _commit(db, team.event_id, me.id)

    logger.info("User %s joined team %s", me.id, team.id)
    data = {
        "team_id": team.id,
        "team_name": team.name,
        "event_id": team.event_id,
        "user_id": me.id,
        "role": TeamRole.MEMBER,
        "member_count": count + 1,
    }
    return envelope("Successfully joined the team", data)


@router.post("/{team_id}/leave", response_model=MessageResponse)
def leave_team(
    team_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id, lock=True)
    membership = _membership(db, team.id, me.id)
    if not membership:
        raise HTTPException(status_code=404, detail="You are not a member of this team")

    event_id = team.event_id

    if membership.role != TeamRole.LEADER:
        db.delete(membership)
        enrollments.unlink_team(db, event_id, me.id)
        _commit(db, event_id, me.id)
        logger.info("User %s left team %s", me.id, team.id)
        return envelope("Successfully left the team")

    if _member_count(db, team.id) > 1:
        raise HTTPException(
            status_code=409,
            detail=(
                "Team leader cannot leave while there are other members. "
                "Transfer leadership or remove all members first."
            ),
        )

    # sole leader: the team goes with them
    db.delete(membership)
    db.flush()
    enrollments.unlink_team(db, event_id, me.id)
    enrollments.unlink_all(db, team.id)
    db.delete(team)
    _commit(db, event_id, me.id)

    logger.info("Team %s disbanded after leader %s left", team_id, me.id)
    return envelope("Team disbanded as leader left")


@router.delete("/{team_id}/members/{member_id}", response_model=MessageResponse)
def remove_member(
    team_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    team = _ensure_team_exists(db, team_id)
    _require_leader(db, team, me, "Only team leader can remove members")

    target = _membership(db, team.id, member_id)
    if not target:
        raise HTTPException(status_code=404, detail="Member not found in team")
    if target.role == TeamRole.LEADER:
        raise HTTPException(status_code=403, detail="Cannot remove team leader")

    db.delete(target)
    enrollments.unlink_team(db, team.event_id, member_id)
    _commit(db, team.event_id, me.id)

    logger.info("Leader %s removed user %s from team %s", me.id, member_id, team.id)
    return envelope("Member removed successfully")

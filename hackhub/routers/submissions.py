import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from sqlalchemy.orm import Session

from hackhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.dates import utcnow
from hackhub.core.deps import get_db, get_docs
from hackhub.core.permissions import can_judge, require_organizer_or_judge, require_participant
from hackhub.core.responses import envelope, pagination
from hackhub.db.documents import SUBMISSIONS, parse_object_id, to_str_id
from hackhub.models.event import Event
from hackhub.models.team import Team, TeamMember, TeamRole
from hackhub.models.user import User, UserRole
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.schemas.submission import SubmissionCreate, SubmissionJudge, SubmissionRead, SubmissionUpdate
from hackhub.services.references import ReferenceValidator

logger = logging.getLogger(__name__)

router = APIRouter()


def _ensure_submission_exists(docs: Database, submission_id: str) -> dict:
    doc = docs[SUBMISSIONS].find_one({"_id": parse_object_id(submission_id, "Submission")})
    if not doc:
        raise HTTPException(status_code=404, detail="Submission not found")
    return doc


def _membership(db: Session, team_id: int, user_id: int) -> TeamMember | None:
    return (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )


def _ensure_member(db: Session, team_id: int, user: User) -> TeamMember:
    membership = _membership(db, team_id, user.id)
    if not membership:
        raise HTTPException(status_code=403, detail="You are not a member of this team")
    return membership


def _can_view(db: Session, doc: dict, user: User) -> bool:
    if _membership(db, doc["team_id"], user.id):
        return True
    event = db.get(Event, doc["event_id"])
    return event is not None and can_judge(user, event)


def _with_team_details(db: Session, docs: list[dict]) -> list[dict]:
    team_ids = {d["team_id"] for d in docs}
    if not team_ids:
        return []

    teams = {
        team.id: (team.name, event_name)
        for team, event_name in db.query(Team, Event.name)
        .join(Event, Event.id == Team.event_id)
        .filter(Team.id.in_(team_ids))
        .all()
    }
    leaders = dict(
        db.query(TeamMember.team_id, User.name)
        .join(User, User.id == TeamMember.user_id)
        .filter(TeamMember.team_id.in_(team_ids), TeamMember.role == TeamRole.LEADER)
        .all()
    )

    out = []
    for d in docs:
        item = to_str_id(d)
        team_name, event_name = teams.get(d["team_id"], (None, None))
        item.update(team_name=team_name, event_name=event_name, leader_name=leaders.get(d["team_id"]))
        out.append(item)
    return out


def _paged(docs: Database, query: dict, page: int, limit: int) -> tuple[list[dict], int]:
    total = docs[SUBMISSIONS].count_documents(query)
    items = list(
        docs[SUBMISSIONS]
        .find(query)
        .sort("submitted_at", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return items, total


@router.post("", response_model=ApiResponse[SubmissionRead], status_code=status.HTTP_201_CREATED)
def create_submission(
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_participant),
):
    ReferenceValidator(db).require(event_id=payload.event_id, team_id=payload.team_id)

    event = db.get(Event, payload.event_id)
    if not event.is_active:
        raise HTTPException(status_code=403, detail="Cannot submit to an inactive event")

    team = db.get(Team, payload.team_id)
    if team.event_id != event.id:
        raise HTTPException(status_code=400, detail="Team does not belong to this event")

    _ensure_member(db, team.id, me)

    duplicate_msg = f"Team already has a submission for round {payload.round} of this event"
    query = {"event_id": event.id, "team_id": team.id, "round": payload.round}
    if docs[SUBMISSIONS].find_one(query):
        raise HTTPException(status_code=409, detail=duplicate_msg)

    now = utcnow()
    doc = {
        **payload.model_dump(),
        "submitted_by": me.id,
        "submitted_at": now,
        "judging_status": "pending",
        "judge_id": None,
        "scores": None,
        "total_score": None,
        "judge_comments": None,
        "rank": None,
        "is_winner": False,
        "prize": None,
        "judged_at": None,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = docs[SUBMISSIONS].insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=duplicate_msg)

    doc["_id"] = result.inserted_id
    logger.info("Team %s submitted round %s for event %s", team.id, payload.round, event.id)
    return envelope("Submission created successfully", to_str_id(doc))


@router.get("", response_model=ApiResponse[list[SubmissionRead]])
def list_submissions(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_organizer_or_judge),
):
    query: dict = {}
    if me.role == UserRole.ORGANIZER:
        event_ids = [eid for (eid,) in db.query(Event.id).filter(Event.organizer_id == me.id).all()]
        query = {"event_id": {"$in": event_ids}}

    items, total = _paged(docs, query, page, limit)
    return envelope(
        "Submissions retrieved successfully",
        _with_team_details(db, items),
        pagination=pagination(page, limit, total),
    )


@router.get("/my-submissions", response_model=ApiResponse[list[SubmissionRead]])
def my_submissions(
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    team_ids = [tid for (tid,) in db.query(TeamMember.team_id).filter(TeamMember.user_id == me.id).all()]
    items = list(
        docs[SUBMISSIONS].find({"team_id": {"$in": team_ids}}).sort("submitted_at", DESCENDING)
    )
    return envelope("Submissions retrieved successfully", _with_team_details(db, items))


@router.get("/event/{event_id}", response_model=ApiResponse[list[SubmissionRead]])
def submissions_for_event(
    event_id: int,
    round: int | None = Query(None, ge=1),
    track: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_organizer_or_judge),
):
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not can_judge(me, event):
        raise HTTPException(status_code=403, detail="You can only view submissions for your own events")

    query: dict = {"event_id": event_id}
    if round is not None:
        query["round"] = round
    if track:
        query["track"] = track

    items, total = _paged(docs, query, page, limit)
    return envelope(
        "Submissions retrieved successfully",
        _with_team_details(db, items),
        pagination=pagination(page, limit, total),
    )


@router.get("/team/{team_id}", response_model=ApiResponse[list[SubmissionRead]])
def submissions_for_team(
    team_id: int,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    team = db.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    _ensure_member(db, team.id, me)

    items = list(docs[SUBMISSIONS].find({"team_id": team.id}).sort("round", DESCENDING))
    return envelope("Team submissions retrieved successfully", _with_team_details(db, items))


@router.get("/{submission_id}", response_model=ApiResponse[SubmissionRead])
def get_submission(
    submission_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_submission_exists(docs, submission_id)
    if not _can_view(db, doc, me):
        raise HTTPException(status_code=403, detail="You are not authorized to view this submission")
    return envelope("Submission retrieved successfully", _with_team_details(db, [doc])[0])


@router.patch("/{submission_id}", response_model=ApiResponse[SubmissionRead])
def update_submission(
    submission_id: str,
    payload: SubmissionUpdate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_participant),
):
    doc = _ensure_submission_exists(docs, submission_id)
    _ensure_member(db, doc["team_id"], me)

    # event, team and submitted_at are not editable
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = utcnow()
    docs[SUBMISSIONS].update_one({"_id": doc["_id"]}, {"$set": changes})

    updated = docs[SUBMISSIONS].find_one({"_id": doc["_id"]})
    return envelope("Submission updated successfully", to_str_id(updated))


@router.delete("/{submission_id}", response_model=MessageResponse)
def delete_submission(
    submission_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_participant),
):
    doc = _ensure_submission_exists(docs, submission_id)
    membership = _membership(db, doc["team_id"], me.id)
    if not membership or membership.role != TeamRole.LEADER:
        raise HTTPException(status_code=403, detail="Only team leaders can delete submissions")

    docs[SUBMISSIONS].delete_one({"_id": doc["_id"]})
    return envelope("Submission deleted successfully")


@router.patch("/{submission_id}/judge", response_model=ApiResponse[SubmissionRead])
def judge_submission(
    submission_id: str,
    payload: SubmissionJudge,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    judge: User = Depends(require_organizer_or_judge),
):
    doc = _ensure_submission_exists(docs, submission_id)

    event = db.get(Event, doc["event_id"])
    if not event or not can_judge(judge, event):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to judge this submission",
        )

    now = utcnow()
    changes = {
        "judging_status": payload.judging_status,
        "judge_id": judge.id,
        "scores": payload.scores.model_dump(),
        "total_score": payload.total_score,
        "judge_comments": payload.judge_comments,
        "is_winner": payload.is_winner,
        # a prize only sticks to winners
        "prize": payload.prize if payload.is_winner else None,
        "judged_at": now,
        "updated_at": now,
    }
    if payload.rank is not None:
        changes["rank"] = payload.rank
    docs[SUBMISSIONS].update_one({"_id": doc["_id"]}, {"$set": changes})

    updated = docs[SUBMISSIONS].find_one({"_id": doc["_id"]})
    logger.info(
        "Submission %s judged by %s: total=%s winner=%s",
        submission_id,
        judge.id,
        payload.total_score,
        payload.is_winner,
    )
    return envelope("Submission judged successfully", to_str_id(updated))

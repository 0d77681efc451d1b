from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo import DESCENDING
from pymongo.database import Database
from sqlalchemy.orm import Session

from hackhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.dates import utcnow
from hackhub.core.deps import get_db, get_docs
from hackhub.core.permissions import can_view_event_feed, is_event_organizer, require_organizer, require_participant
from hackhub.core.responses import envelope, pagination
from hackhub.db.documents import ANNOUNCEMENTS, parse_object_id, to_str_id
from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.event import Event
from hackhub.models.user import User
from hackhub.schemas.announcement import AnnouncementCreate, AnnouncementRead, AnnouncementUpdate, Priority
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.services.references import ReferenceValidator

router = APIRouter()


def _ensure_announcement_exists(docs: Database, announcement_id: str) -> dict:
    doc = docs[ANNOUNCEMENTS].find_one({"_id": parse_object_id(announcement_id, "Announcement")})
    if not doc:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return doc


def _ensure_author(doc: dict, user: User, action: str) -> None:
    if doc["author_id"] != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You can only {action} your own announcements",
        )


def _enrolled_event_ids(db: Session, user: User) -> list[int]:
    rows = (
        db.query(Enrollment.event_id)
        .filter(Enrollment.user_id == user.id, Enrollment.status == EnrollmentStatus.ENROLLED)
        .all()
    )
    return [event_id for (event_id,) in rows]


def _with_event_names(db: Session, docs: list[dict]) -> list[dict]:
    ids = {d["event_id"] for d in docs}
    names = dict(db.query(Event.id, Event.name).filter(Event.id.in_(ids)).all()) if ids else {}
    out = []
    for d in docs:
        item = to_str_id(d)
        item["event_name"] = names.get(d["event_id"])
        out.append(item)
    return out


def _newest_first(docs: Database, query: dict):
    # important announcements float to the top
    return docs[ANNOUNCEMENTS].find(query).sort([("is_important", DESCENDING), ("created_at", DESCENDING)])


@router.post("", response_model=ApiResponse[AnnouncementRead], status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: AnnouncementCreate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    ReferenceValidator(db).require(event_id=payload.event_id)
    event = db.get(Event, payload.event_id)
    if not is_event_organizer(organizer, event):
        raise HTTPException(
            status_code=403,
            detail="You can only create announcements for your own events",
        )

    now = utcnow()
    doc = {**payload.model_dump(), "author_id": organizer.id, "created_at": now, "updated_at": now}
    result = docs[ANNOUNCEMENTS].insert_one(doc)
    doc["_id"] = result.inserted_id

    return envelope("Announcement created successfully", to_str_id(doc))


@router.get("", response_model=ApiResponse[list[AnnouncementRead]])
def organizer_announcements(
    event_id: int | None = None,
    priority: Priority | None = None,
    important: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    query: dict = {"author_id": organizer.id}
    if event_id is not None:
        query["event_id"] = event_id
    if priority is not None:
        query["priority"] = priority
    if important is not None:
        query["is_important"] = important

    total = docs[ANNOUNCEMENTS].count_documents(query)
    items = list(_newest_first(docs, query).skip((page - 1) * limit).limit(limit))
    return envelope(
        "Announcements retrieved successfully",
        _with_event_names(db, items),
        pagination=pagination(page, limit, total),
    )


@router.get("/my", response_model=ApiResponse[list[AnnouncementRead]])
def my_announcements(
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_participant),
):
    query = {"event_id": {"$in": _enrolled_event_ids(db, me)}}
    items = list(_newest_first(docs, query))
    return envelope("Announcements retrieved successfully", _with_event_names(db, items))


@router.get("/my-important", response_model=ApiResponse[list[AnnouncementRead]])
def my_important_announcements(
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_participant),
):
    query = {"event_id": {"$in": _enrolled_event_ids(db, me)}, "is_important": True}
    items = list(_newest_first(docs, query))
    return envelope("Important announcements retrieved successfully", _with_event_names(db, items))


@router.get("/event/{event_id}", response_model=ApiResponse[list[AnnouncementRead]])
def announcements_for_event(
    event_id: int,
    important: bool | None = None,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not can_view_event_feed(db, me, event):
        raise HTTPException(
            status_code=403,
            detail="You must be enrolled in this event to view its announcements",
        )

    query: dict = {"event_id": event_id}
    if important is not None:
        query["is_important"] = important
    items = list(_newest_first(docs, query))
    return envelope("Announcements retrieved successfully", _with_event_names(db, items))


@router.get("/{announcement_id}", response_model=ApiResponse[AnnouncementRead])
def get_announcement(
    announcement_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_announcement_exists(docs, announcement_id)
    event = db.get(Event, doc["event_id"])
    if event is None or not can_view_event_feed(db, me, event):
        raise HTTPException(status_code=403, detail="You are not authorized to view this announcement")
    return envelope("Announcement retrieved successfully", _with_event_names(db, [doc])[0])


@router.patch("/{announcement_id}", response_model=ApiResponse[AnnouncementRead])
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    doc = _ensure_announcement_exists(docs, announcement_id)
    _ensure_author(doc, organizer, "update")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = utcnow()
    docs[ANNOUNCEMENTS].update_one({"_id": doc["_id"]}, {"$set": changes})

    updated = docs[ANNOUNCEMENTS].find_one({"_id": doc["_id"]})
    return envelope("Announcement updated successfully", to_str_id(updated))


@router.delete("/{announcement_id}", response_model=MessageResponse)
def delete_announcement(
    announcement_id: str,
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    doc = _ensure_announcement_exists(docs, announcement_id)
    _ensure_author(doc, organizer, "delete")

    docs[ANNOUNCEMENTS].delete_one({"_id": doc["_id"]})
    return envelope("Announcement deleted successfully")

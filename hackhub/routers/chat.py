from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo import DESCENDING
from pymongo.database import Database
from sqlalchemy.orm import Session

from hackhub.core.config import CHAT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.dates import utcnow
from hackhub.core.deps import get_db, get_docs
from hackhub.core.permissions import is_event_organizer
from hackhub.core.responses import envelope, pagination
from hackhub.db.documents import CHATS, parse_object_id, to_str_id
from hackhub.models.event import Event
from hackhub.models.user import User
from hackhub.schemas.chat import ChatCreate, ChatMessageBody, ChatReplyRead, ChatThreadRead
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.services.references import ReferenceValidator

router = APIRouter()


def _ensure_thread_exists(docs: Database, chat_id: str) -> dict:
    doc = docs[CHATS].find_one({"_id": parse_object_id(chat_id, "Chat")})
    if not doc:
        raise HTTPException(status_code=404, detail="Chat message not found")
    return doc


def _find_reply(doc: dict, reply_id: str) -> dict:
    for reply in doc.get("replies", []):
        if reply["id"] == reply_id:
            return reply
    raise HTTPException(status_code=404, detail="Reply not found")


def _is_event_owner(db: Session, user: User, event_id: int) -> bool:
    event = db.get(Event, event_id)
    return event is not None and is_event_organizer(user, event)


def _with_author_names(db: Session, threads: list[dict]) -> list[dict]:
    author_ids = set()
    for t in threads:
        author_ids.add(t["author_id"])
        author_ids.update(r["author_id"] for r in t.get("replies", []))
    names = dict(db.query(User.id, User.name).filter(User.id.in_(author_ids)).all()) if author_ids else {}

    out = []
    for t in threads:
        item = to_str_id(t)
        item["author_name"] = names.get(t["author_id"])
        item["replies"] = [
            {**r, "author_name": names.get(r["author_id"])} for r in t.get("replies", [])
        ]
        out.append(item)
    return out


@router.post("", response_model=ApiResponse[ChatThreadRead], status_code=status.HTTP_201_CREATED)
def create_thread(
    payload: ChatCreate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    ReferenceValidator(db).require(event_id=payload.event_id)
    event = db.get(Event, payload.event_id)
    if not event.is_active:
        raise HTTPException(status_code=404, detail="Event not found or not active")

    now = utcnow()
    doc = {
        "event_id": event.id,
        "author_id": me.id,
        "message": payload.message,
        "replies": [],
        "created_at": now,
        "updated_at": now,
    }
    result = docs[CHATS].insert_one(doc)
    doc["_id"] = result.inserted_id

    return envelope("Message posted successfully", _with_author_names(db, [doc])[0])


@router.get("/event/{event_id}", response_model=ApiResponse[list[ChatThreadRead]])
def threads_for_event(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(CHAT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    _me: User = Depends(get_current_user),
):
    if not db.get(Event, event_id):
        raise HTTPException(status_code=404, detail="Event not found")

    query = {"event_id": event_id}
    total = docs[CHATS].count_documents(query)
    newest = list(
        docs[CHATS]
        .find(query)
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    # page through newest first, display oldest first like a chat log
    newest.reverse()

    return envelope(
        "Messages retrieved successfully",
        _with_author_names(db, newest),
        pagination=pagination(page, limit, total),
    )


@router.get("/{chat_id}", response_model=ApiResponse[ChatThreadRead])
def get_thread(
    chat_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    _me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)
    return envelope("Message retrieved successfully", _with_author_names(db, [doc])[0])


@router.patch("/{chat_id}", response_model=ApiResponse[ChatThreadRead])
def update_thread(
    chat_id: str,
    payload: ChatMessageBody,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)
    if doc["author_id"] != me.id:
        raise HTTPException(status_code=403, detail="You can only update your own messages")

    docs[CHATS].update_one(
        {"_id": doc["_id"]},
        {"$set": {"message": payload.message, "updated_at": utcnow()}},
    )
    updated = docs[CHATS].find_one({"_id": doc["_id"]})
    return envelope("Message updated successfully", _with_author_names(db, [updated])[0])


@router.delete("/{chat_id}", response_model=MessageResponse)
def delete_thread(
    chat_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)
    if doc["author_id"] != me.id and not _is_event_owner(db, me, doc["event_id"]):
        raise HTTPException(status_code=403, detail="You can only delete your own messages")

    docs[CHATS].delete_one({"_id": doc["_id"]})
    return envelope("Message deleted successfully")


@router.post(
    "/{chat_id}/reply",
    response_model=ApiResponse[ChatReplyRead],
    status_code=status.HTTP_201_CREATED,
)
def add_reply(
    chat_id: str,
    payload: ChatMessageBody,
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)

    now = utcnow()
    reply = {
        "id": str(ObjectId()),
        "author_id": me.id,
        "message": payload.message,
        "created_at": now,
        "updated_at": now,
    }
    docs[CHATS].update_one(
        {"_id": doc["_id"]},
        {"$push": {"replies": reply}, "$set": {"updated_at": now}},
    )

    return envelope("Reply added successfully", {**reply, "author_name": me.name})


@router.patch("/{chat_id}/reply/{reply_id}", response_model=ApiResponse[ChatReplyRead])
def update_reply(
    chat_id: str,
    reply_id: str,
    payload: ChatMessageBody,
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)
    reply = _find_reply(doc, reply_id)
    if reply["author_id"] != me.id:
        raise HTTPException(status_code=403, detail="You can only update your own replies")

    now = utcnow()
    result = docs[CHATS].update_one(
        {"_id": doc["_id"], "replies.id": reply_id},
        {
            "$set": {
                "replies.$.message": payload.message,
                "replies.$.updated_at": now,
                "updated_at": now,
            }
        },
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Reply not found")
    reply = {**reply, "message": payload.message, "updated_at": now}

    return envelope("Reply updated successfully", {**reply, "author_name": me.name})


@router.delete("/{chat_id}/reply/{reply_id}", response_model=MessageResponse)
def delete_reply(
    chat_id: str,
    reply_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_thread_exists(docs, chat_id)
    reply = _find_reply(doc, reply_id)
    if reply["author_id"] != me.id and not _is_event_owner(db, me, doc["event_id"]):
        raise HTTPException(status_code=403, detail="You can only delete your own replies")

    docs[CHATS].update_one(
        {"_id": doc["_id"]},
        {"$pull": {"replies": {"id": reply_id}}, "$set": {"updated_at": utcnow()}},
    )

    return envelope("Reply deleted successfully")

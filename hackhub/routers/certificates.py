import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from sqlalchemy.orm import Session

from hackhub.core.current_user import get_current_user
from hackhub.core.dates import utcnow
from hackhub.core.deps import get_db, get_docs
from hackhub.core.permissions import (
    can_judge,
    is_enrolled,
    is_event_organizer,
    require_organizer,
    require_organizer_or_judge,
)
from hackhub.core.responses import envelope
from hackhub.db.documents import CERTIFICATES, parse_object_id, to_str_id
from hackhub.models.event import Event
from hackhub.models.user import User
from hackhub.schemas.certificate import (
    BulkIssueResult,
    CertificateBulkCreate,
    CertificateCreate,
    CertificateGenerate,
    CertificateRead,
    CertificateTemplate,
    CertificateUpdate,
)
from hackhub.schemas.common import ApiResponse, MessageResponse
from hackhub.services.references import ReferenceValidator

logger = logging.getLogger(__name__)

router = APIRouter()

DUPLICATE = "Certificate already issued for this user in this event"

TEMPLATES = [
    {"id": "template1", "name": "Classic Blue", "preview": "/cert_templates/Template1.png"},
    {"id": "template2", "name": "Ocean Blue", "preview": "/cert_templates/Template2.png"},
    {"id": "template3", "name": "Elegant Black", "preview": "/cert_templates/Template3.png"},
    {"id": "template4", "name": "Simple White", "preview": "/cert_templates/Template4.jpeg"},
    {"id": "template5", "name": "Royal Red", "preview": "/cert_templates/Template5.png"},
    {"id": "template6", "name": "Purple Galaxy", "preview": "/cert_templates/Template6.png"},
    {"id": "template7", "name": "Sunset Orange", "preview": "/cert_templates/Template7.png"},
    {"id": "template8", "name": "Purple Professional", "preview": "/cert_templates/Template8.png"},
    {"id": "template9", "name": "Cyber Blue", "preview": "/cert_templates/Template9.gif"},
    {"id": "template10", "name": "Modern Gradient", "preview": "/cert_templates/Template10.jpg"},
    {"id": "template11", "name": "Clean Minimal", "preview": "/cert_templates/Template11.png"},
]


def _ensure_certificate_exists(docs: Database, certificate_id: str) -> dict:
    doc = docs[CERTIFICATES].find_one({"_id": parse_object_id(certificate_id, "Certificate")})
    if not doc:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return doc


def _ensure_owned_event(db: Session, event_id: int, organizer: User, action: str) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not is_event_organizer(organizer, event):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You are not authorized to {action} certificates for this event",
        )
    return event


def _with_names(db: Session, docs: list[dict]) -> list[dict]:
    event_ids = {d["event_id"] for d in docs}
    user_ids = {d["user_id"] for d in docs}
    events = dict(db.query(Event.id, Event.name).filter(Event.id.in_(event_ids)).all()) if event_ids else {}
    users = dict(db.query(User.id, User.name).filter(User.id.in_(user_ids)).all()) if user_ids else {}

    out = []
    for d in docs:
        item = to_str_id(d)
        item["event_name"] = events.get(d["event_id"])
        item["user_name"] = users.get(d["user_id"])
        out.append(item)
    return out


@router.post("", response_model=ApiResponse[CertificateRead], status_code=status.HTTP_201_CREATED)
def issue_certificate(
    payload: CertificateCreate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    ReferenceValidator(db).require(event_id=payload.event_id, user_id=payload.user_id)
    _ensure_owned_event(db, payload.event_id, organizer, "issue")

    if not is_enrolled(db, payload.user_id, payload.event_id):
        raise HTTPException(status_code=400, detail="User was not enrolled in this event")

    if docs[CERTIFICATES].find_one({"event_id": payload.event_id, "user_id": payload.user_id}):
        raise HTTPException(status_code=409, detail=DUPLICATE)

    now = utcnow()
    doc = {**payload.model_dump(), "issued_by": organizer.id, "issued_at": now, "updated_at": now}
    try:
        result = docs[CERTIFICATES].insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail=DUPLICATE)
    doc["_id"] = result.inserted_id

    return envelope("Certificate issued successfully", to_str_id(doc))


@router.post("/bulk", response_model=ApiResponse[BulkIssueResult])
def bulk_issue_certificates(
    payload: CertificateBulkCreate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    ReferenceValidator(db).require(event_id=payload.event_id)
    _ensure_owned_event(db, payload.event_id, organizer, "issue")

    refs = ReferenceValidator(db)
    certificate_url = payload.model_dump()["certificate_url"]
    issued, skipped, errors = [], [], []

    # dict.fromkeys keeps order and drops repeated ids
    user_ids = list(dict.fromkeys(payload.user_ids))
    for user_id in user_ids:
        if not refs.exists("user", user_id):
            errors.append({"user_id": user_id, "error": "User not found"})
            continue
        if not is_enrolled(db, user_id, payload.event_id):
            errors.append({"user_id": user_id, "error": "User was not enrolled in this event"})
            continue
        if docs[CERTIFICATES].find_one({"event_id": payload.event_id, "user_id": user_id}):
            skipped.append({"user_id": user_id, "reason": "Certificate already exists"})
            continue

        now = utcnow()
        try:
            result = docs[CERTIFICATES].insert_one(
                {
                    "event_id": payload.event_id,
                    "user_id": user_id,
                    "certificate_url": certificate_url,
                    "issued_by": organizer.id,
                    "issued_at": now,
                    "updated_at": now,
                }
            )
        except DuplicateKeyError:
            skipped.append({"user_id": user_id, "reason": "Certificate already exists"})
            continue
        issued.append({"user_id": user_id, "certificate_id": str(result.inserted_id)})

    summary = {
        "total": len(user_ids),
        "issued": len(issued),
        "skipped": len(skipped),
        "errors": len(errors),
    }
    logger.info("Bulk certificate issue for event %s: %s", payload.event_id, summary)
    return envelope(
        "Bulk certificate issuance completed",
        {"issued": issued, "skipped": skipped, "errors": errors, "summary": summary},
    )


@router.get("/my", response_model=ApiResponse[list[CertificateRead]])
def my_certificates(
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    items = list(docs[CERTIFICATES].find({"user_id": me.id}).sort("issued_at", DESCENDING))
    return envelope("Certificates retrieved successfully", _with_names(db, items))


@router.get("/templates", response_model=ApiResponse[list[CertificateTemplate]])
def certificate_templates(_me: User = Depends(get_current_user)):
    return envelope("Certificate templates retrieved successfully", TEMPLATES)


@router.post("/generate", status_code=status.HTTP_201_CREATED)
def generate_certificate(
    payload: CertificateGenerate,
    db: Session = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    event = _ensure_owned_event(db, payload.event_id, organizer, "generate")
    if payload.template not in {t["id"] for t in TEMPLATES}:
        raise HTTPException(status_code=400, detail=f"Unknown certificate template: {payload.template}")

    # data for the client-side renderer; nothing is persisted
    data = {
        **payload.model_dump(),
        "event_name": event.name,
        "author_name": payload.author_name or organizer.name,
        "generated_by": organizer.id,
        "generated_at": utcnow(),
    }
    return envelope("Certificate generated successfully", data)


@router.get("/event/{event_id}", response_model=ApiResponse[list[CertificateRead]])
def certificates_for_event(
    event_id: int,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(require_organizer_or_judge),
):
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if not can_judge(me, event):
        raise HTTPException(
            status_code=403,
            detail="You are not authorized to view certificates for this event",
        )

    items = list(docs[CERTIFICATES].find({"event_id": event_id}).sort("issued_at", DESCENDING))
    return envelope("Certificates retrieved successfully", _with_names(db, items))


@router.get("/{certificate_id}", response_model=ApiResponse[CertificateRead])
def get_certificate(
    certificate_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    me: User = Depends(get_current_user),
):
    doc = _ensure_certificate_exists(docs, certificate_id)
    if doc["user_id"] != me.id:
        event = db.get(Event, doc["event_id"])
        if event is None or not is_event_organizer(me, event):
            raise HTTPException(status_code=403, detail="You are not authorized to view this certificate")
    return envelope("Certificate retrieved successfully", _with_names(db, [doc])[0])


@router.patch("/{certificate_id}", response_model=ApiResponse[CertificateRead])
def update_certificate(
    certificate_id: str,
    payload: CertificateUpdate,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    doc = _ensure_certificate_exists(docs, certificate_id)
    _ensure_owned_event(db, doc["event_id"], organizer, "update")

    changes = {**payload.model_dump(), "updated_at": utcnow()}
    docs[CERTIFICATES].update_one({"_id": doc["_id"]}, {"$set": changes})

    updated = docs[CERTIFICATES].find_one({"_id": doc["_id"]})
    return envelope("Certificate updated successfully", to_str_id(updated))


@router.delete("/{certificate_id}", response_model=MessageResponse)
def delete_certificate(
    certificate_id: str,
    db: Session = Depends(get_db),
    docs: Database = Depends(get_docs),
    organizer: User = Depends(require_organizer),
):
    doc = _ensure_certificate_exists(docs, certificate_id)
    _ensure_owned_event(db, doc["event_id"], organizer, "delete")

    docs[CERTIFICATES].delete_one({"_id": doc["_id"]})
    return envelope("Certificate deleted successfully")

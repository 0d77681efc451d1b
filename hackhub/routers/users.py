from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hackhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hackhub.core.current_user import get_current_user
from hackhub.core.deps import get_db
from hackhub.core.responses import envelope, pagination
from hackhub.core.security import hash_password
from hackhub.models.user import User
from hackhub.schemas.common import ApiResponse
from hackhub.schemas.user import UserRead, UserUpdate

router = APIRouter()


@router.get("", response_model=ApiResponse[list[UserRead]])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    total = db.query(User).count()
    users = (
        db.query(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return envelope("Users retrieved successfully", users, pagination=pagination(page, limit, total))


@router.get("/search", response_model=ApiResponse[list[UserRead]])
def search_users(
    q: str = Query(..., min_length=2, max_length=100),
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    term = f"%{q.strip()}%"
    users = (
        db.query(User)
        .filter(or_(User.name.ilike(term), User.email.ilike(term)))
        .order_by(User.name)
        .limit(MAX_PAGE_SIZE)
        .all()
    )
    return envelope(f"Found {len(users)} user(s)", users)


@router.get("/{user_id}", response_model=ApiResponse[UserRead])
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _me: User = Depends(get_current_user),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return envelope("User retrieved successfully", user)


@router.patch("/{user_id}", response_model=ApiResponse[UserRead])
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    if user_id != me.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only update your own profile",
        )

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
        taken = (
            db.query(User.id)
            .filter(User.email == changes["email"], User.id != me.id)
            .first()
        )
        if taken:
            raise HTTPException(status_code=409, detail="Email already exists")
    if "password" in changes:
        me.hashed_password = hash_password(changes.pop("password"))

    for field, value in changes.items():
        setattr(me, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already exists")
    db.refresh(me)

    return envelope("User updated successfully", me)

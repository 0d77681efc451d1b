import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hackhub.core.config import ACCESS_TOKEN_EXPIRE
from hackhub.core.current_user import get_current_user
from hackhub.core.deps import get_db
from hackhub.core.responses import envelope
from hackhub.core.security import create_access_token, hash_password, verify_password
from hackhub.models.user import User
from hackhub.schemas.auth import LoginRequest
from hackhub.schemas.common import ApiResponse
from hackhub.schemas.token import Token
from hackhub.schemas.user import UserCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Email already exists"},
    },
)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.lower()
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already exists",
        )

    user = User(
        name=payload.name,
        email=email,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        auth_provider=payload.auth_provider,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    db.refresh(user)

    logger.info("Registered user %s with role %s", user.id, user.role.value)
    return envelope("User created successfully", user)


@router.post(
    "/login",
    response_model=ApiResponse[Token],
    responses={
        401: {"description": "Invalid email or password"},
    },
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=ACCESS_TOKEN_EXPIRE,
    )

    return envelope(
        "Login successful",
        {"access_token": access_token, "token_type": "bearer", "user": user},
    )


@router.get("/me", response_model=ApiResponse[UserRead])
def me(current_user: User = Depends(get_current_user)):
    return envelope("User retrieved successfully", current_user)

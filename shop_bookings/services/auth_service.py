from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shop_bookings.core.security import create_access_token, get_password_hash, verify_password
from shop_bookings.db.models.user import PlatformRole, User
from shop_bookings.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

EMAIL_TAKEN_DETAIL = "User with this email already exists"


def register_user(payload: RegisterRequest, db: Session) -> User:
    email = payload.email.lower()
    if db.scalar(select(User.id).where(User.email == email)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL)

    # Self-registration only ever creates customers; super admins are provisioned out of band.
    user = User(
        email=email,
        name=payload.name,
        hashed_password=get_password_hash(payload.password),
        platform_role=PlatformRole.CUSTOMER.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN_DETAIL) from None
    db.refresh(user)
    return user


def login_user(payload: LoginRequest, db: Session) -> TokenResponse:
    user = db.scalar(select(User).where(User.email == payload.email.lower()))
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    token = create_access_token(
        subject=str(user.id),
        extra_claims={"platform_role": user.platform_role, "email": user.email},
    )
    return TokenResponse(access_token=token)

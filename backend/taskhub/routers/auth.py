import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.core.database import get_db
from taskhub.core.deadlines import utcnow
from taskhub.core.security import (
    MAX_PASSWORD_BYTES, create_access_token, decode_access_token, get_password_hash, verify_password,
)
from taskhub.models.user import User, normalize_email
from taskhub.schemas.user import (
    AuthResponse, ProfileResponse, ProfileUpdate, SettingsUpdate, UserLogin, UserProfile, UserRegister,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


def _issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)], db: AsyncSession = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError) as e:
        logger.debug("Rejected token: %s", e)
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        logger.debug("Token for unknown or inactive user %s", user_id)
        raise credentials_exception
    return user


async def _email_taken(db: AsyncSession, email: str, exclude_id=None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserRegister, db: AsyncSession = Depends(get_db)):
    if not user_in.first_name or not user_in.last_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="First and last name are required")
    if not user_in.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    if not user_in.password or len(user_in.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if len(user_in.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
        )

    email = normalize_email(user_in.email)
    try:
        if await _email_taken(db, email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="User already exists with this email",
            )

        new_user = User(
            first_name=user_in.first_name,
            last_name=user_in.last_name,
            email=email,
            hashed_password=get_password_hash(user_in.password),
            last_login=utcnow(),
        )
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Registration failed for %s", email)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during registration",
        )

    logger.info("Registered user %s", new_user.id)
    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(new_user),
        user=UserProfile.model_validate(new_user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, db: AsyncSession = Depends(get_db)):
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        result = await db.execute(select(User).where(User.email == normalize_email(credentials.email)))
        user = result.scalar_one_or_none()

        if not user or not verify_password(credentials.password, user.hashed_password):
            raise invalid
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user.last_login = utcnow()
        await db.commit()
        await db.refresh(user)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Login failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during login",
        )

    return AuthResponse(
        message="Login successful",
        token=_issue_token(user),
        user=UserProfile.model_validate(user),
    )


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile information"""
    return UserProfile.model_validate(current_user)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields; only the fields of ProfileUpdate are accepted."""
    updates = profile_update.model_dump(exclude_unset=True)

    for required in ("first_name", "last_name", "email"):
        if required in updates and not updates[required]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{to_camel(required)} cannot be empty",
            )

    try:
        if "email" in updates:
            updates["email"] = normalize_email(updates["email"])
            if updates["email"] != current_user.email and await _email_taken(
                db, updates["email"], exclude_id=current_user.id
            ):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email already in use"
                )

        for field, value in updates.items():
            setattr(current_user, field, value)

        await db.commit()
        await db.refresh(current_user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Profile update failed for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error updating profile",
        )

    return ProfileResponse(message="Profile updated successfully", user=UserProfile.model_validate(current_user))


@router.put("/settings", response_model=ProfileResponse)
async def update_settings(
    settings_update: SettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update theme, notification and language preferences"""
    updates = settings_update.model_dump(exclude_unset=True)
    for field, value in updates.items():
        if value is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{to_camel(field)} cannot be null",
            )
        setattr(current_user, field, value)

    try:
        await db.commit()
        await db.refresh(current_user)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Settings update failed for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error updating settings",
        )

    return ProfileResponse(message="Settings updated successfully", user=UserProfile.model_validate(current_user))

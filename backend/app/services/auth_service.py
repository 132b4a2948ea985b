"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.schemas.user import UserCreate, UserLogin
from app.core.exceptions import AuthenticationError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import hash_password, verify_password, create_access_token
from app.core.logging import get_logger

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a client or vendor account with a hashed password.
    Raises ConflictError if the email or username is taken.
    """
    result = await db.execute(
        select(User).where(or_(User.email == user_data.email, User.username == user_data.username))
    )
    existing = result.scalars().first()
    if existing:
        reason = "email_exists" if existing.email == user_data.email else "username_exists"
        logger.warning("registration_failed", reason=reason, email=user_data.email)
        raise ConflictError(
            "Email already registered" if reason == "email_exists" else "Username already taken"
        )

    user = User(
        email=user_data.email,
        username=user_data.username,
        full_name=user_data.full_name,
        role=user_data.role,
        hashed_password=hash_password(user_data.password),
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id, email=user.email, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """Check credentials and return a JWT carrying the user id and role."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return token


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user

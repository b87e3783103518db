from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.catalog import Instructor
from app.models.class_session import ClassSession
from app.models.customer import Customer
from app.models.user import STAFF_ROLES, Role, User
from app.utils.security import ACCESS_TOKEN, decode_token
from core.db import get_db
from core.exceptions.base import (
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db_session: AsyncSession = Depends(get_db),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not token:
        raise UnauthorizedException(message="Not authenticated")

    payload = decode_token(token, expected_type=ACCESS_TOKEN)
    user = await User.get_by_id(db_session, payload["sub"])

    if not user:
        raise UnauthorizedException(message="User not found")
    if not user.is_active:
        raise UnauthorizedException(message="User is inactive")

    return user


async def get_current_staff(
    current_user: User = Depends(get_current_user),
) -> User:
    """Admin, staff or instructor."""
    if current_user.role not in STAFF_ROLES:
        raise ForbiddenException(message="Staff access required")
    return current_user


async def get_current_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """Admin or office staff; instructors only run classes."""
    if current_user.role not in [Role.ADMIN, Role.STAFF]:
        raise ForbiddenException(message="Admin access required")
    return current_user


async def get_current_customer(
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> Customer:
    """Customer profile of the logged-in user."""
    customer = await Customer.get_by_user_id(db_session, current_user.id)
    if not customer:
        raise NotFoundException(message="No customer profile for this account")
    return customer


async def ensure_runs_session(
    db_session: AsyncSession, user: User, session_id: str
) -> None:
    """Instructors only manage sessions they take; other staff manage all."""
    if user.role != Role.INSTRUCTOR:
        return
    session = await ClassSession.get_by_id(db_session, session_id)
    if not session:
        raise NotFoundException(message="Session not found")
    instructor = await Instructor.get_by_user_id(db_session, user.id)
    if not instructor or session.instructor_id != instructor.id:
        raise ForbiddenException(message="You do not take this session")

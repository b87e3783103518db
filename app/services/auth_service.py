from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.user import Role, User
from app.schemas.auth import RegisterRequest, TokenResponse
from app.utils.security import (
    REFRESH_TOKEN,
    create_tokens,
    decode_token,
    hash_password,
    verify_password,
)
from core.exceptions.base import BadRequestException, UnauthorizedException
from core.logging import get_logger

logger = get_logger(__name__)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def register(self, data: RegisterRequest) -> Tuple[User, TokenResponse]:
        """Register a customer login together with its customer profile."""
        existing_user = await User.get_by_email(self.db_session, data.email)
        if existing_user:
            raise BadRequestException(message="Email already registered")

        user = await User.create_user(
            db_session=self.db_session,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            hashed_password=hash_password(data.password),
            role=Role.CUSTOMER,
        )
        customer = Customer(
            user_id=user.id,
            first_name=data.first_name,
            surname=data.last_name,
            email=user.email,
            contact_no=data.contact_no,
        )
        self.db_session.add(customer)
        await self.db_session.commit()
        logger.info(f"Registered customer {customer.id} for user {user.id}")

        return user, self._tokens_for(user)

    async def login(self, email: str, password: str) -> Tuple[User, TokenResponse]:
        user = await User.get_by_email(self.db_session, email)

        if not user or not user.hashed_password:
            raise UnauthorizedException(message="Invalid email or password")
        if not verify_password(password, user.hashed_password):
            raise UnauthorizedException(message="Invalid email or password")
        if not user.is_active:
            raise UnauthorizedException(message="Account is deactivated")

        user.last_login = datetime.now(timezone.utc)
        await self.db_session.commit()

        return user, self._tokens_for(user)

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)

        user = await User.get_by_id(self.db_session, payload["sub"])
        if not user or not user.is_active:
            raise UnauthorizedException(message="User not found or inactive")

        return self._tokens_for(user)

    @staticmethod
    def _tokens_for(user: User) -> TokenResponse:
        access_token, refresh_token = create_tokens(user.id, user.role.value)
        return TokenResponse(access_token=access_token, refresh_token=refresh_token)

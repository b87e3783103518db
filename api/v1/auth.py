from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserResponse,
)
from app.services.auth_service import AuthService
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db_session: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    """
    Register a new customer account.

    Returns user data and authentication tokens.
    """
    logger.info(f"Register request for email: {data.email}")
    service = AuthService(db_session)
    user, tokens = await service.register(data)
    return RegisterResponse(user=UserResponse.model_validate(user), tokens=tokens)


@router.post("/token", response_model=TokenResponse)
async def login_for_swagger(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db_session: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """
    OAuth2 compatible token endpoint for Swagger UI.

    Username field expects email address.
    """
    service = AuthService(db_session)
    user, tokens = await service.login(form_data.username, form_data.password)
    logger.info(f"User logged in: {user.id}")
    return tokens


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db_session: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Authenticate with a JSON body of email and password."""
    service = AuthService(db_session)
    user, tokens = await service.login(data.email, data.password)
    logger.info(f"User logged in: {user.id}")
    return tokens


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    data: RefreshTokenRequest,
    db_session: AsyncSession = Depends(get_db),
) -> TokenResponse:
    service = AuthService(db_session)
    return await service.refresh_token(data.refresh_token)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)

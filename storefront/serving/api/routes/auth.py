"""
Authentication Endpoints
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.integrations import EmailService
from storefront.serving.api.dependencies import get_current_user, get_mailer
from storefront.serving.api.schemas import (
    AuthData,
    Envelope,
    LoginRequest,
    RegisterRequest,
    TokenData,
    UserOut,
)
from storefront.services.accounts import AccountService

router = APIRouter()


@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_dependency),
    mailer: EmailService = Depends(get_mailer),
) -> Envelope[AuthData]:
    user, token = await AccountService(db, mailer).register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    return Envelope(
        message="User registered successfully",
        data=AuthData(user=UserOut.model_validate(user), token=token),
    )


@router.post("/login", response_model=Envelope[AuthData])
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[AuthData]:
    user, token = await AccountService(db).login(body.email, body.password)
    return Envelope(
        message="Login successful",
        data=AuthData(user=UserOut.model_validate(user), token=token),
    )


@router.get("/profile", response_model=Envelope[UserOut])
async def profile(user: User = Depends(get_current_user)) -> Envelope[UserOut]:
    return Envelope(data=UserOut.model_validate(user))


@router.post("/refresh", response_model=Envelope[TokenData])
async def refresh_token(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[TokenData]:
    token = await AccountService(db).refresh(user.id)
    return Envelope(message="Token refreshed", data=TokenData(token=token))

"""
Shared route dependencies: authentication and external clients.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.integrations import EmailService, OzowGateway
from storefront.services.accounts import decode_access_token
from storefront.services.exceptions import Forbidden, Unauthorized

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_dependency),
) -> User:
    """Resolve the bearer token to a user, or answer 401."""
    if credentials is None:
        raise Unauthorized("Access token required")

    claims = decode_access_token(credentials.credentials)
    user = await db.get(User, int(claims["sub"]))
    if user is None:
        raise Unauthorized("User not found")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


def get_payment_gateway() -> OzowGateway:
    return OzowGateway()


def get_mailer() -> EmailService:
    return EmailService()

"""
Accounts: registration, login, tokens, profile and address book.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
import structlog
from jose import JWTError, jwt
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.database.models import Address, AddressType, User
from storefront.integrations.email import EmailService
from storefront.services.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    rounds = get_settings().security.bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT for a user.

    Claims: ``sub`` (user id as string), ``email``, ``is_admin``, ``iat``, ``exp``.
    """
    security = get_settings().security
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=security.jwt_expiration_hours))

    claims = {
        "sub": str(user.id),
        "email": user.email,
        "is_admin": bool(user.is_admin),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, security.jwt_secret_key.get_secret_value(), algorithm=security.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry.

    Raises:
        Unauthorized: Token invalid, expired or without a subject
    """
    security = get_settings().security
    try:
        claims = jwt.decode(
            token,
            security.jwt_secret_key.get_secret_value(),
            algorithms=[security.jwt_algorithm],
        )
    except JWTError:
        raise Unauthorized("Invalid or expired token")

    if not str(claims.get("sub", "")).isdigit():
        raise Unauthorized("Invalid or expired token")
    return claims


class AccountService:
    """User account operations."""

    def __init__(self, db: AsyncSession, mailer: Optional[EmailService] = None):
        self.db = db
        self.mailer = mailer

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
    ) -> tuple[User, str]:
        """
        Create an account and sign the first token.

        The welcome email is best-effort and never fails registration.
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        email = email.strip().lower()
        if await self.db.scalar(select(User.id).where(func.lower(User.email) == email)):
            raise Conflict("User with this email already exists")

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_admin=False,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        logger.info("User registered", user_id=user.id)

        if self.mailer is not None:
            await self.mailer.send_welcome(user.email, user.first_name)

        return user, create_access_token(user)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.db.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Login rejected")
            raise Unauthorized("Invalid email or password")

        logger.info("User logged in", user_id=user.id)
        return user, create_access_token(user)

    async def refresh(self, user_id: int) -> str:
        """New token from the user's current data."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise Unauthorized("User not found")
        return create_access_token(user)

    async def update_profile(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User:
        changes = {
            k: v
            for k, v in (("first_name", first_name), ("last_name", last_name), ("phone", phone))
            if v is not None
        }
        if not changes:
            raise ValidationFailed("No fields to update")

        user = await self.get_user(user_id)
        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    # -------------------------------------------------------------------------
    # Address book
    # -------------------------------------------------------------------------

    async def list_addresses(self, user_id: int) -> List[Address]:
        result = await self.db.execute(
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
        )
        return list(result.scalars().all())

    async def _unset_defaults(self, user_id: int, address_type: str, keep_id: Optional[int] = None) -> None:
        stmt = update(Address).where(
            Address.user_id == user_id,
            Address.type == address_type,
            Address.is_default.is_(True),
        )
        if keep_id is not None:
            stmt = stmt.where(Address.id != keep_id)
        await self.db.execute(stmt.values(is_default=False))

    @staticmethod
    def _check_type(address_type: str) -> str:
        try:
            return AddressType(address_type).value
        except ValueError:
            raise ValidationFailed("Address type must be billing or shipping")

    async def add_address(self, user_id: int, **fields) -> Address:
        fields["type"] = self._check_type(fields["type"])
        if fields.get("is_default"):
            await self._unset_defaults(user_id, fields["type"])

        address = Address(user_id=user_id, **fields)
        self.db.add(address)
        await self.db.flush()
        await self.db.refresh(address)
        return address

    async def _address(self, user_id: int, address_id: int) -> Address:
        address = await self.db.scalar(
            select(Address).where(Address.id == address_id, Address.user_id == user_id)
        )
        if address is None:
            raise NotFound("Address not found")
        return address

    async def update_address(self, user_id: int, address_id: int, **fields) -> Address:
        address = await self._address(user_id, address_id)
        if "type" in fields:
            fields["type"] = self._check_type(fields["type"])

        for field, value in fields.items():
            setattr(address, field, value)
        if address.is_default:
            await self._unset_defaults(user_id, address.type, keep_id=address.id)

        await self.db.flush()
        await self.db.refresh(address)
        return address

    async def delete_address(self, user_id: int, address_id: int) -> None:
        address = await self._address(user_id, address_id)
        await self.db.delete(address)
        await self.db.flush()

"""
User profile and address book endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database.connection import get_db_dependency
from storefront.database.models import User
from storefront.serving.api.dependencies import get_current_user
from storefront.serving.api.schemas import (
    AddressCreate,
    AddressOut,
    AddressUpdate,
    Envelope,
    MessageResponse,
    ProfileUpdate,
    UserOut,
)
from storefront.services.accounts import AccountService

router = APIRouter()


@router.get("/profile", response_model=Envelope[UserOut])
async def get_profile(user: User = Depends(get_current_user)) -> Envelope[UserOut]:
    return Envelope(data=UserOut.model_validate(user))


@router.put("/profile", response_model=Envelope[UserOut])
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[UserOut]:
    updated = await AccountService(db).update_profile(
        user.id,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
    )
    return Envelope(message="Profile updated successfully", data=UserOut.model_validate(updated))


@router.get("/addresses", response_model=Envelope[List[AddressOut]])
async def list_addresses(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[List[AddressOut]]:
    addresses = await AccountService(db).list_addresses(user.id)
    return Envelope(data=[AddressOut.model_validate(a) for a in addresses])


@router.post("/addresses", response_model=Envelope[AddressOut], status_code=status.HTTP_201_CREATED)
async def add_address(
    body: AddressCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[AddressOut]:
    address = await AccountService(db).add_address(user.id, **body.model_dump())
    return Envelope(message="Address added successfully", data=AddressOut.model_validate(address))


@router.put("/addresses/{address_id}", response_model=Envelope[AddressOut])
async def update_address(
    address_id: int,
    body: AddressUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> Envelope[AddressOut]:
    address = await AccountService(db).update_address(
        user.id, address_id, **body.model_dump(exclude_unset=True)
    )
    return Envelope(message="Address updated successfully", data=AddressOut.model_validate(address))


@router.delete("/addresses/{address_id}", response_model=MessageResponse)
async def delete_address(
    address_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_dependency),
) -> MessageResponse:
    await AccountService(db).delete_address(user.id, address_id)
    return MessageResponse(message="Address deleted successfully")

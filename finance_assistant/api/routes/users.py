"""FastAPI routes for user management."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, EmailStr, Field

from finance_assistant.api.dependencies import clamp_limit, get_user_service, parse_external_id
from finance_assistant.models import User
from finance_assistant.services import UserService

router = APIRouter(prefix="/v1/users", tags=["users"])


class UserRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr
    phone: str = Field("", description="Contact phone (optional)")


class UpdateUserRequest(BaseModel):
    name: str = ""
    email: Optional[EmailStr] = None
    phone: str = ""


class UserResponse(BaseModel):
    id: str = Field(..., description="External user id")
    name: str
    email: str
    phone: str = ""
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.external_id),
            name=user.name,
            email=user.email,
            phone=user.phone,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    limit: int


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(request: UserRequest, service: UserService = Depends(get_user_service)) -> UserResponse:
    user = await service.create_user(request.name, request.email, request.phone)
    return UserResponse.from_user(user)


@router.get("", response_model=UserListResponse)
async def list_users(page: int = 1, limit: int = 10, service: UserService = Depends(get_user_service)) -> UserListResponse:
    page = max(page, 1)
    limit = clamp_limit(limit)
    users, total = await service.list_users(page, limit)
    return UserListResponse(users=[UserResponse.from_user(u) for u in users], total=total, page=page, limit=limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, service: UserService = Depends(get_user_service)) -> UserResponse:
    user = await service.get_user(parse_external_id(user_id, "user id"))
    return UserResponse.from_user(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await service.update_user(
        parse_external_id(user_id, "user id"),
        name=request.name,
        email=request.email or "",
        phone=request.phone,
    )
    return UserResponse.from_user(user)


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: str, service: UserService = Depends(get_user_service)) -> Response:
    await service.delete_user(parse_external_id(user_id, "user id"))
    return Response(status_code=204)

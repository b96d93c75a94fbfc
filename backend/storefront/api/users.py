"""
Users API Endpoints
"""
from fastapi import APIRouter, Depends, Query, Response
from typing import Dict, Any

from ..exceptions import UserNotFoundError
from ..models.orders import CreateUserInput, UpdateUserInput, User
from ..services.user_service import UserService
from .deps import get_user_service

router = APIRouter()


@router.post("", status_code=201)
async def create_user_endpoint(
    body: CreateUserInput,
    users: UserService = Depends(get_user_service)
) -> User:
    return await users.create_user(body)


@router.get("")
async def list_users_endpoint(
    limit: int = Query(10, ge=1, le=100, description="Max results"),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    users: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    result = await users.list_users(limit, offset)
    return {"count": len(result), "users": result}


@router.get("/{user_id}")
async def get_user_endpoint(
    user_id: str,
    users: UserService = Depends(get_user_service)
) -> User:
    user = await users.get_user(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


@router.patch("/{user_id}")
async def update_user_endpoint(
    user_id: str,
    body: UpdateUserInput,
    users: UserService = Depends(get_user_service)
) -> User:
    return await users.update_user(user_id, body)


@router.delete("/{user_id}", status_code=204)
async def delete_user_endpoint(
    user_id: str,
    users: UserService = Depends(get_user_service)
) -> Response:
    await users.delete_user(user_id)
    return Response(status_code=204)

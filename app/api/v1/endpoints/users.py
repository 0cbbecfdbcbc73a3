"""
User endpoints.

CRUD over user records. Domain errors raised by the service are mapped to
HTTP responses by the handlers registered in app.main.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Response, status

from app.api.dependencies import get_user_service
from app.db.repositories.user import MAX_USER_ID
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter()

UserId = Annotated[int, Path(ge=1, le=MAX_USER_ID, description="User id")]


@router.post("",
             summary="Create a user.",
             response_model=UserResponse,
             status_code=status.HTTP_201_CREATED)
def create_user(user_data: UserCreate, service: UserService = Depends(get_user_service)):
    """
    Create a new user.

    Args:
        user_data: Username, password and optional email

    Returns:
        Created user data (without password)

    Raises:
        400: If username or password is empty
        409: If username or email already exists
    """
    return service.create_user(user_data)


@router.get("", summary="List users, newest first.", response_model=list[UserResponse])
def list_users(service: UserService = Depends(get_user_service)):
    return service.list_users()


@router.get("/{user_id}", summary="Get a user.", response_model=UserResponse)
def get_user(user_id: UserId, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)


@router.put("/{user_id}", summary="Update password and/or email.", response_model=UserResponse)
def update_user(user_id: UserId, user_data: UserUpdate, service: UserService = Depends(get_user_service)):
    """Fields omitted from the body are left unchanged."""
    return service.update_user(user_id, user_data)


@router.delete("/{user_id}", summary="Delete a user.", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: UserId, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

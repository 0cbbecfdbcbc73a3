"""Pydantic schemas for request/response validation."""

from app.schemas.user import UserCreate, UserResponse, UserUpdate

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserUpdate",
]

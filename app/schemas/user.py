"""
User API schemas.

Pydantic models for user-related request/response validation.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Request schemas
class UserCreate(BaseModel):
    """Schema for creating a user."""
    username: str = Field(..., max_length=50)
    password: str
    email: Optional[str] = Field(None, max_length=100)


class UserUpdate(BaseModel):
    """
    Schema for updating a user.

    Omitted (or null) fields are left unchanged. The username cannot be
    changed.
    """
    password: Optional[str] = None
    email: Optional[str] = Field(None, max_length=100)


# Response schemas
class UserResponse(BaseModel):
    """Schema for user data in API responses (no password hash)."""
    id: int
    username: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)  # Allows creation from SQLModel objects

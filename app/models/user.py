"""
User database model.

Defines the users table. The password hash is stored in the ``password``
column.
"""

import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel


def utcnow() -> datetime.datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.datetime.now(datetime.timezone.utc)


class User(SQLModel, table=True):
    """
    Persisted user record.

    ``password_hash`` never leaves the service layer; responses are built
    from UserResponse.
    """
    __tablename__ = "users"
    # Keep SQLite from reusing the ids of deleted rows
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=50, nullable=False)
    password_hash: str = Field(sa_column=Column("password", String(255), nullable=False))
    email: Optional[str] = Field(default=None, unique=True, max_length=100, nullable=True)

    # Timestamps
    created_at: datetime.datetime = Field(default_factory=utcnow,
                                          sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime.datetime = Field(default_factory=utcnow,
                                          sa_column=Column(DateTime(timezone=True), nullable=False))

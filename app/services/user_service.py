"""
User service.

Business logic for the user record lifecycle: required-field checks, password
hashing, partial updates and sanitized responses.
"""

import logging

from app.core.errors import ConflictError, DuplicateKeyError, ValidationError
from app.core.security import PasswordHasher
from app.db.repositories.user import UserRepository
from app.models.user import User
from app.schemas.user import UserCreate, UserResponse, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    """Service for user-related business logic."""

    def __init__(self, repository: UserRepository, hasher: PasswordHasher):
        """
        Initialize service with its collaborators.

        Args:
            repository: User persistence
            hasher: Password hasher
        """
        self.repository = repository
        self.hasher = hasher

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_user(self, data: UserCreate) -> UserResponse:
        """
        Create a new user.

        Args:
            data: Username, plaintext password and optional email

        Returns:
            Created user (without password hash)

        Raises:
            ValidationError: If username or password is empty
            HashingError: If the password cannot be hashed
            ConflictError: If username or email already exists
        """
        logger.info("Creating user username=%s email=%s", data.username, data.email)
        if not data.username or not data.password:
            raise ValidationError("username and password are required")

        user = User(username=data.username, password_hash=self.hasher.hash(data.password), email=data.email)
        try:
            user = self.repository.create(user)
        except DuplicateKeyError as exc:
            raise ConflictError("username or email already exists") from exc

        logger.info("Created user id=%s", user.id)
        return self._to_response(user)

    def get_user(self, user_id: int) -> UserResponse:
        """
        Get a user by ID.

        Raises:
            NotFoundError: If no user has this id
        """
        return self._to_response(self.repository.find_by_id(user_id))

    def list_users(self) -> list[UserResponse]:
        """All users, newest first."""
        return [self._to_response(u) for u in self.repository.list_ordered_by_id_desc()]

    def update_user(self, user_id: int, data: UserUpdate) -> UserResponse:
        """
        Apply a partial update. Omitted fields keep their stored value.

        Args:
            user_id: Target user
            data: Optional new password and/or email

        Returns:
            Updated user

        Raises:
            NotFoundError: If no user has this id
            ValidationError: If a new password is given but empty
            ConflictError: If the new email belongs to another user
        """
        user = self.repository.find_by_id(user_id)

        if data.password is not None:
            if not data.password:
                raise ValidationError("password must not be empty")
            user.password_hash = self.hasher.hash(data.password)
        if data.email is not None:
            user.email = data.email

        try:
            user = self.repository.save(user)
        except DuplicateKeyError as exc:
            raise ConflictError("email already exists") from exc

        logger.info("Updated user id=%s password_changed=%s", user.id, data.password is not None)
        return self._to_response(user)

    def delete_user(self, user_id: int) -> None:
        """
        Delete a user by ID.

        Raises:
            NotFoundError: If no user has this id
        """
        self.repository.delete_by_id(user_id)
        logger.info("Deleted user id=%s", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_response(user: User) -> UserResponse:
        return UserResponse(id=user.id, username=user.username, email=user.email)

"""
User repository.

Handles database operations for User model. Store-specific duplicate-key
errors are translated into DuplicateKeyError and missing rows into
NotFoundError; statements interrupted for a cancelled or expired request
surface as the context's own error. Any other store failure propagates
unchanged.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, col, select

from app.core.context import RequestContext, active_context
from app.core.errors import DeadlineExceededError, DuplicateKeyError, NotFoundError
from app.models.user import User, utcnow

# SQLSTATE for unique_violation (PostgreSQL) and MySQL's ER_DUP_ENTRY
_PG_UNIQUE_VIOLATION = "23505"
_MYSQL_DUP_ENTRY = 1062
_DUPLICATE_MARKERS = ("UNIQUE constraint failed", "duplicate key value", "Duplicate entry")

# SQLSTATE for query_canceled (PostgreSQL statement_timeout)
_PG_QUERY_CANCELED = "57014"

# Largest id a signed 64-bit primary key can hold
MAX_USER_ID = 2 ** 63 - 1


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a unique-constraint failure apart from other integrity errors."""
    orig = exc.orig
    if getattr(orig, "pgcode", None) == _PG_UNIQUE_VIOLATION:
        return True
    if getattr(orig, "sqlstate", None) == _PG_UNIQUE_VIOLATION:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_DUP_ENTRY:
        return True
    message = str(orig)
    return any(marker in message for marker in _DUPLICATE_MARKERS)


def _is_statement_timeout(exc: OperationalError) -> bool:
    orig = exc.orig
    return _PG_QUERY_CANCELED in (getattr(orig, "pgcode", None), getattr(orig, "sqlstate", None))


class UserRepository:
    """Repository for User database operations."""

    def __init__(self, session: Session, context: Optional[RequestContext] = None):
        """
        Initialize repository with database session.

        Args:
            session: SQLModel database session
            context: Cancellation/deadline signal honoured by every call
        """
        self.session = session
        self.context = context or RequestContext()

    def create(self, user: User) -> User:
        """
        Insert a new user.

        Args:
            user: User instance to create

        Returns:
            Created user with generated id and timestamps

        Raises:
            DuplicateKeyError: If username or email already exists
        """
        with self._store_call():
            now = utcnow()
            user.id = None
            user.created_at = now
            user.updated_at = now
            self.session.add(user)
            self._commit()
            self.session.refresh(user)
            return user

    def find_by_id(self, user_id: int) -> User:
        """
        Get user by ID, always reading from the store.

        Raises:
            NotFoundError: If no user has this id
        """
        with self._store_call():
            user = None
            if 0 < user_id <= MAX_USER_ID:
                user = self.session.get(User, user_id, populate_existing=True)
            if user is None:
                raise NotFoundError("user not found")
            return user

    def list_ordered_by_id_desc(self) -> list[User]:
        """
        Get all users, newest first.

        Returns:
            List of users ordered by id descending
        """
        with self._store_call():
            statement = select(User).order_by(col(User.id).desc())
            return list(self.session.exec(statement).all())

    def save(self, user: User) -> User:
        """
        Write every column of an existing user back to the store.

        Args:
            user: User instance with updated data

        Returns:
            Updated user

        Raises:
            NotFoundError: If the row no longer exists
            DuplicateKeyError: If the new email belongs to another user
        """
        with self._store_call():
            if user.id is None or not self._exists(user.id):
                raise NotFoundError("user not found")

            if user not in self.session:
                stored = self.session.get(User, user.id)
                if stored is None:
                    raise NotFoundError("user not found")
                stored.username = user.username
                stored.password_hash = user.password_hash
                stored.email = user.email
                user = stored

            user.updated_at = utcnow()
            self.session.add(user)
            self._commit()
            self.session.refresh(user)
            return user

    def delete_by_id(self, user_id: int) -> None:
        """
        Delete a user by ID.

        Raises:
            NotFoundError: If no user has this id
        """
        with self._store_call():
            user = self.session.get(User, user_id) if 0 < user_id <= MAX_USER_ID else None
            if user is None:
                raise NotFoundError("user not found")
            self.session.delete(user)
            self._commit()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _store_call(self) -> Iterator[None]:
        """
        Run one repository operation under the request context.

        Checks the context up front, bounds server-side statement time by the
        remaining deadline, and turns statements the store interrupted into
        RequestCancelledError / DeadlineExceededError.
        """
        self.context.check()
        token = active_context.set(self.context)
        try:
            self._apply_statement_timeout()
            yield
        except OperationalError as exc:
            if self.context.done:
                self.session.rollback()
                self.context.check()
            if _is_statement_timeout(exc):
                self.session.rollback()
                raise DeadlineExceededError("request deadline exceeded") from exc
            raise
        finally:
            active_context.reset(token)

    def _apply_statement_timeout(self) -> None:
        # SQLite is interrupted through its progress handler instead (app.db.session)
        remaining = self.context.remaining()
        dialect = self.session.get_bind().dialect.name
        if remaining is None or dialect not in ("postgresql", "mysql"):
            return
        timeout_ms = max(1, int(remaining * 1000))
        connection = self.session.connection()
        if dialect == "postgresql":
            # Scoped to the current transaction
            connection.exec_driver_sql(f"SET LOCAL statement_timeout = {timeout_ms}")
        else:
            # Applies to SELECTs only
            connection.exec_driver_sql(f"SET SESSION max_execution_time = {timeout_ms}")

    def _exists(self, user_id: int) -> bool:
        # Pending changes on the caller's instance must not be flushed here
        with self.session.no_autoflush:
            statement = select(User.id).where(User.id == user_id)
            return self.session.exec(statement).first() is not None

    def _commit(self) -> None:
        """Flush, re-check the context, then commit; roll back on any failure."""
        try:
            self.session.flush()
            self.context.check()
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if is_unique_violation(exc):
                raise DuplicateKeyError("duplicate key") from exc
            raise
        except StaleDataError as exc:
            # Row deleted between the existence check and the UPDATE
            self.session.rollback()
            raise NotFoundError("user not found") from exc
        except Exception:
            self.session.rollback()
            raise

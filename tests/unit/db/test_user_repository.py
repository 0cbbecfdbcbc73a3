"""Tests for UserRepository against an in-memory SQLite store."""

import datetime
import time

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine

from app.core.context import RequestContext, active_context
from app.core.errors import DeadlineExceededError, DuplicateKeyError, NotFoundError, RequestCancelledError
from app.db.repositories.user import MAX_USER_ID, UserRepository, is_unique_violation
from app.models.user import User


def _user(username: str, email: str | None = None) -> User:
    return User(username=username, password_hash="$2b$04$hash", email=email)


class ExpiringContext(RequestContext):
    """Context whose deadline passes after a fixed number of checks."""

    def __init__(self, checks_before_expiry: int):
        super().__init__()
        self.checks_left = checks_before_expiry

    def check(self) -> None:
        if self.checks_left <= 0:
            raise DeadlineExceededError("request deadline exceeded")
        self.checks_left -= 1


# ======================================================================
# create
# ======================================================================


class TestCreate:
    def test_assigns_id_and_timestamps(self, repository):
        user = repository.create(_user("alice", "alice@example.com"))
        assert user.id is not None and user.id > 0
        assert user.created_at is not None
        assert user.updated_at == user.created_at

    def test_ids_increase(self, repository):
        first = repository.create(_user("alice"))
        second = repository.create(_user("bob"))
        assert second.id > first.id

    def test_duplicate_username(self, repository):
        repository.create(_user("alice"))
        with pytest.raises(DuplicateKeyError):
            repository.create(_user("alice"))

    def test_duplicate_email(self, repository):
        repository.create(_user("alice", "shared@example.com"))
        with pytest.raises(DuplicateKeyError):
            repository.create(_user("bob", "shared@example.com"))

    def test_absent_emails_do_not_collide(self, repository):
        repository.create(_user("alice"))
        repository.create(_user("bob"))
        assert len(repository.list_ordered_by_id_desc()) == 2

    def test_empty_email_is_distinct_from_absent(self, repository):
        user = repository.create(_user("alice", ""))
        assert repository.find_by_id(user.id).email == ""
        repository.create(_user("bob"))

    def test_session_usable_after_duplicate(self, repository):
        repository.create(_user("alice"))
        with pytest.raises(DuplicateKeyError):
            repository.create(_user("alice"))
        assert repository.create(_user("bob")).username == "bob"


# ======================================================================
# find / list
# ======================================================================


class TestRead:
    def test_find_by_id(self, repository):
        created = repository.create(_user("alice", "alice@example.com"))
        found = repository.find_by_id(created.id)
        assert found.username == "alice"
        assert found.email == "alice@example.com"

    def test_find_missing(self, repository):
        with pytest.raises(NotFoundError, match="user not found"):
            repository.find_by_id(999)

    def test_find_reads_from_store(self, engine, repository):
        created = repository.create(_user("alice"))
        with Session(engine) as other:
            row = other.get(User, created.id)
            row.email = "changed@example.com"
            other.add(row)
            other.commit()
        assert repository.find_by_id(created.id).email == "changed@example.com"

    def test_list_empty(self, repository):
        assert repository.list_ordered_by_id_desc() == []

    def test_list_newest_first(self, repository):
        for name in ("a", "b", "c"):
            repository.create(_user(name))
        users = repository.list_ordered_by_id_desc()
        assert [u.username for u in users] == ["c", "b", "a"]
        assert [u.id for u in users] == sorted((u.id for u in users), reverse=True)


# ======================================================================
# save
# ======================================================================


class TestSave:
    def test_updates_fields_and_timestamp(self, repository):
        user = repository.create(_user("alice"))
        created_at, updated_at = user.created_at, user.updated_at
        time.sleep(0.01)

        user.email = "alice@example.com"
        saved = repository.save(user)

        assert saved.email == "alice@example.com"
        assert saved.created_at == created_at
        assert saved.updated_at > updated_at

    def test_resave_unchanged_unique_fields(self, repository):
        user = repository.create(_user("alice", "alice@example.com"))
        saved = repository.save(user)
        assert saved.username == "alice"
        assert saved.email == "alice@example.com"

    def test_email_collision(self, repository):
        repository.create(_user("alice", "alice@example.com"))
        bob = repository.create(_user("bob", "bob@example.com"))
        bob.email = "alice@example.com"
        with pytest.raises(DuplicateKeyError):
            repository.save(bob)
        assert repository.find_by_id(bob.id).email == "bob@example.com"

    def test_detached_instance_is_written_in_full(self, engine, repository):
        created = repository.create(_user("alice"))
        detached = User(id=created.id, username="alice", password_hash="$2b$04$other", email="new@example.com")
        with Session(engine) as other:
            saved = UserRepository(other).save(detached)
            assert saved.password_hash == "$2b$04$other"
        assert repository.find_by_id(created.id).email == "new@example.com"

    def test_missing_row(self, repository):
        with pytest.raises(NotFoundError):
            repository.save(User(id=42, username="ghost", password_hash="x"))

    def test_unsaved_instance(self, repository):
        with pytest.raises(NotFoundError):
            repository.save(_user("ghost"))


# ======================================================================
# delete
# ======================================================================


class TestDelete:
    def test_delete(self, repository):
        user = repository.create(_user("alice"))
        repository.delete_by_id(user.id)
        with pytest.raises(NotFoundError):
            repository.find_by_id(user.id)

    def test_delete_missing(self, repository):
        with pytest.raises(NotFoundError):
            repository.delete_by_id(999)

    def test_ids_not_reused(self, repository):
        first = repository.create(_user("alice"))
        second = repository.create(_user("bob"))
        repository.delete_by_id(second.id)
        third = repository.create(_user("carol"))
        assert third.id > second.id > first.id


# ======================================================================
# cancellation / deadline
# ======================================================================


class TestContext:
    def test_expired_deadline_aborts_before_store(self, session):
        repository = UserRepository(session, RequestContext(timeout=0))
        with pytest.raises(DeadlineExceededError):
            repository.create(_user("alice"))
        assert UserRepository(session).list_ordered_by_id_desc() == []

    def test_cancelled_request(self, session):
        ctx = RequestContext()
        ctx.cancel()
        with pytest.raises(RequestCancelledError):
            UserRepository(session, ctx).list_ordered_by_id_desc()

    def test_deadline_passing_before_commit_rolls_back(self, session):
        repository = UserRepository(session, ExpiringContext(checks_before_expiry=1))
        with pytest.raises(DeadlineExceededError):
            repository.create(_user("alice"))
        assert UserRepository(session).list_ordered_by_id_desc() == []


# ======================================================================
# is_unique_violation
# ======================================================================


class _DriverError(Exception):
    pgcode = None


class TestIsUniqueViolation:
    def _wrap(self, orig) -> IntegrityError:
        return IntegrityError("INSERT INTO users ...", {}, orig)

    def test_sqlite_message(self):
        assert is_unique_violation(self._wrap(Exception("UNIQUE constraint failed: users.username")))

    def test_postgres_code(self):
        orig = _DriverError("boom")
        orig.pgcode = "23505"
        assert is_unique_violation(self._wrap(orig))

    def test_mysql_code(self):
        assert is_unique_violation(self._wrap(Exception(1062, "Duplicate entry 'a' for key 'username'")))

    def test_not_null_is_not_duplicate(self):
        assert not is_unique_violation(self._wrap(Exception("NOT NULL constraint failed: users.password")))


# ======================================================================
# timestamps
# ======================================================================


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive values; other stores keep the offset
    return value if value.tzinfo else value.replace(tzinfo=datetime.timezone.utc)


class TestTimestamps:
    def test_round_trip_through_store(self, repository):
        before = datetime.datetime.now(datetime.timezone.utc)
        created = repository.create(_user("alice"))
        after = datetime.datetime.now(datetime.timezone.utc)

        found = repository.find_by_id(created.id)
        assert found.created_at == created.created_at
        assert found.updated_at == created.updated_at
        assert before <= _as_utc(found.created_at) <= after

    def test_save_round_trip(self, repository):
        user = repository.create(_user("alice"))
        user.email = "alice@example.com"
        saved = repository.save(user)
        assert repository.find_by_id(saved.id).updated_at == saved.updated_at
        assert _as_utc(saved.updated_at) >= _as_utc(saved.created_at)


# ======================================================================
# concurrent writers
# ======================================================================


@pytest.fixture
def file_engine(tmp_path):
    # Separate connections per session, unlike the shared in-memory store
    engine = create_engine(f"sqlite:///{tmp_path / 'users.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


class TestConcurrentWriters:
    def test_same_email_from_two_sessions(self, file_engine):
        with Session(file_engine) as setup:
            seed = UserRepository(setup)
            alice_id = seed.create(_user("alice")).id
            bob_id = seed.create(_user("bob")).id

        with Session(file_engine) as first, Session(file_engine) as second:
            alice = UserRepository(first).find_by_id(alice_id)
            bob = UserRepository(second).find_by_id(bob_id)
            alice.email = "shared@example.com"
            bob.email = "shared@example.com"

            UserRepository(first).save(alice)
            with pytest.raises(DuplicateKeyError):
                UserRepository(second).save(bob)

        with Session(file_engine) as check:
            owners = [u.username for u in UserRepository(check).list_ordered_by_id_desc()
                      if u.email == "shared@example.com"]
        assert owners == ["alice"]

    def test_same_username_from_two_sessions(self, file_engine):
        with Session(file_engine) as first, Session(file_engine) as second:
            UserRepository(first).create(_user("alice", "first@example.com"))
            with pytest.raises(DuplicateKeyError):
                UserRepository(second).create(_user("alice", "second@example.com"))

        with Session(file_engine) as check:
            users = UserRepository(check).list_ordered_by_id_desc()
        assert [(u.username, u.email) for u in users] == [("alice", "first@example.com")]


# ======================================================================
# id bounds
# ======================================================================


class TestIdBounds:
    @pytest.mark.parametrize("user_id", [0, -1, MAX_USER_ID + 1, 2 ** 64])
    def test_find_out_of_range(self, repository, user_id):
        with pytest.raises(NotFoundError):
            repository.find_by_id(user_id)

    @pytest.mark.parametrize("user_id", [0, MAX_USER_ID + 1])
    def test_delete_out_of_range(self, repository, user_id):
        with pytest.raises(NotFoundError):
            repository.delete_by_id(user_id)


# ======================================================================
# interrupted statements
# ======================================================================


class CancelledMidStatement(RequestContext):
    """Passes the entry check, then reports the request as cancelled."""

    def __init__(self):
        super().__init__()
        self.entry_checks = 1

    @property
    def done(self) -> bool:
        return True

    def check(self) -> None:
        if self.entry_checks:
            self.entry_checks -= 1
            return
        raise RequestCancelledError("request cancelled")


def _seed_rows(session: Session, count: int) -> None:
    session.connection().exec_driver_sql(
        "WITH RECURSIVE n(i) AS (SELECT 1 UNION ALL SELECT i + 1 FROM n WHERE i < ?) "
        "INSERT INTO users (username, password, created_at, updated_at) "
        "SELECT 'user' || i, 'x', CURRENT_TIMESTAMP, CURRENT_TIMESTAMP FROM n",
        (count,),
    )
    session.commit()


class TestInterruptedStatements:
    def test_running_query_is_interrupted(self, session):
        _seed_rows(session, 5000)
        repository = UserRepository(session, CancelledMidStatement())
        with pytest.raises(RequestCancelledError):
            repository.list_ordered_by_id_desc()
        assert len(UserRepository(session).list_ordered_by_id_desc()) == 5000

    def test_active_context_is_cleared_after_call(self, repository):
        repository.list_ordered_by_id_desc()
        assert active_context.get() is None

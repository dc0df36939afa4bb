"""
Tests for the account entry engine.

Registering and signing in share one entry point. These tests pin down
the merge behaviour, the order of checks and the one-account-per-email
guarantee, including under concurrent submissions.
"""

import asyncio
import threading
from typing import Optional

import pytest

from src.accounts import AccountEntryEngine
from src.audit import AuditLogger
from src.config.settings import SecuritySettings, StorageSettings
from src.models.account import (
    Account,
    EmailErrorReason,
    EntryReason,
    EntryState,
    EntryStatus,
)
from src.models.audit import AuditEventType
from src.services.security import JWTSessionIssuer, PasslibPasswordHasher
from src.services.storage import (
    ConnectionError,
    DuplicateError,
    InMemoryAccountStorage,
    InMemoryAuditStorage,
)


FAST_SECURITY = SecuritySettings(password_hash_rounds=1000)
NO_WAIT_STORAGE = StorageSettings(
    retry_attempts=3,
    retry_wait_min_seconds=0,
    retry_wait_max_seconds=0,
)


def run(coro):
    return asyncio.run(coro)


class CountingAccountStorage(InMemoryAccountStorage):
    """In-memory store that counts every call."""

    def __init__(self):
        super().__init__()
        self.find_calls = 0
        self.insert_calls = 0

    @property
    def calls(self) -> int:
        return self.find_calls + self.insert_calls

    async def find(self, email: str) -> Optional[Account]:
        self.find_calls += 1
        # Give other submissions a chance to interleave
        await asyncio.sleep(0)
        return await super().find(email)

    async def insert(self, account: Account) -> bool:
        self.insert_calls += 1
        await asyncio.sleep(0)
        return await super().insert(account)


class StaleReadAccountStorage(InMemoryAccountStorage):
    """Simulates an eventually consistent store: the first lookup misses."""

    def __init__(self, existing: Account):
        super().__init__()
        self._accounts[existing.email] = existing
        self._stale_reads = 1

    async def find(self, email: str) -> Optional[Account]:
        if self._stale_reads:
            self._stale_reads -= 1
            return None
        return await super().find(email)


class SlowLookupAccountStorage(InMemoryAccountStorage):
    """Lookups take long enough for a second submission to arrive."""

    async def find(self, email: str) -> Optional[Account]:
        await asyncio.sleep(0.3)
        return await super().find(email)


class FlakyAccountStorage(InMemoryAccountStorage):
    """Fails to connect a fixed number of times before working."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def find(self, email: str) -> Optional[Account]:
        self.attempts += 1
        if self.failures:
            self.failures -= 1
            raise ConnectionError("store unavailable")
        return await super().find(email)


@pytest.fixture
def hasher():
    return PasslibPasswordHasher(FAST_SECURITY)


@pytest.fixture
def sessions():
    return JWTSessionIssuer(FAST_SECURITY)


@pytest.fixture
def store():
    return CountingAccountStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def engine(store, hasher, sessions, audit_storage):
    return AccountEntryEngine(
        account_storage=store,
        password_hasher=hasher,
        session_issuer=sessions,
        audit_logger=AuditLogger(audit_storage),
        storage_settings=NO_WAIT_STORAGE,
    )


class TestRegistration:
    """First submission for an email creates the account."""

    def test_register_new_email(self, engine, store):
        """A new email is registered and gets a session."""
        outcome = run(engine.submit("test@example.com", "mypass"))

        assert outcome.is_completed
        assert outcome.status == EntryStatus.REGISTERED
        assert outcome.session.account_email == "test@example.com"
        assert outcome.session.token
        assert len(store) == 1

    def test_register_walks_creating_branch(self, engine):
        outcome = run(engine.submit("test@example.com", "mypass"))
        assert outcome.states == [
            EntryState.IDLE,
            EntryState.VALIDATING,
            EntryState.CREATING,
            EntryState.COMPLETED,
        ]

    def test_password_is_hashed(self, engine, store, hasher):
        """The stored credential is a hash, never the plaintext."""
        run(engine.submit("test@example.com", "mypass"))
        account = run(store.find("test@example.com"))
        assert account.password_hash != "mypass"
        assert hasher.verify("mypass", account.password_hash)

    def test_email_is_case_sensitive(self, engine, store):
        """Emails are matched exactly; a different case is a different account."""
        run(engine.submit("Test@example.com", "mypass"))
        outcome = run(engine.submit("test@example.com", "otherpass"))
        assert outcome.status == EntryStatus.REGISTERED
        assert len(store) == 2


class TestRegisterBecomesLogin:
    """Submitting a known email signs the user in instead of failing."""

    def test_second_submit_logs_in(self, engine, store):
        """Same email, same password: logged in, no second account."""
        run(engine.submit("test@example.com", "mypass"))
        outcome = run(engine.submit("test@example.com", "mypass"))

        assert outcome.is_completed
        assert outcome.status == EntryStatus.LOGGED_IN
        assert outcome.session.account_email == "test@example.com"
        assert outcome.states[-2:] == [EntryState.AUTHENTICATING, EntryState.COMPLETED]
        assert len(store) == 1

    def test_wrong_password_is_rejected(self, engine, store):
        """Same email, wrong password: rejected, still one account."""
        run(engine.submit("test@example.com", "mypass"))
        outcome = run(engine.submit("test@example.com", "wrongpass"))

        assert outcome.rejected
        assert outcome.reason == EntryReason.CREDENTIAL_MISMATCH
        assert outcome.session is None
        assert outcome.final_state == EntryState.REJECTED
        assert len(store) == 1

    def test_repeated_logins_issue_new_sessions(self, engine, sessions):
        run(engine.submit("test@example.com", "mypass"))
        first = run(engine.submit("test@example.com", "mypass"))
        second = run(engine.submit("test@example.com", "mypass"))
        assert first.session.token != second.session.token
        assert sessions.verify(second.session.token) == "test@example.com"


class TestRejectionOrder:
    """Missing password and bad email are rejected without touching the store."""

    @pytest.mark.parametrize("password", ["", None])
    def test_missing_password(self, engine, store, password):
        outcome = run(engine.submit("a@b.com", password))

        assert outcome.rejected
        assert outcome.reason == EntryReason.MISSING_PASSWORD
        assert outcome.states == [EntryState.IDLE, EntryState.REJECTED]
        assert store.calls == 0

    def test_missing_password_wins_over_bad_email(self, engine, store):
        outcome = run(engine.submit("not-an-email", ""))
        assert outcome.reason == EntryReason.MISSING_PASSWORD
        assert store.calls == 0

    def test_empty_email_with_password(self, engine, store):
        """An empty email with a password shows the email error."""
        outcome = run(engine.submit("", "mypass"))

        assert outcome.reason == EntryReason.INVALID_EMAIL
        assert outcome.email_reason == EmailErrorReason.MALFORMED_STRUCTURE
        assert store.calls == 0

    @pytest.mark.parametrize("email, email_reason", [
        ("abc", EmailErrorReason.MALFORMED_STRUCTURE),
        ("a @x.cz", EmailErrorReason.MALFORMED_LOCAL_PART),
        ("trailingdot@shouldfail.com.", EmailErrorReason.MALFORMED_DOMAIN),
        ("email@[127.0.0.256]", EmailErrorReason.IP_LITERAL_OUT_OF_RANGE),
    ])
    def test_invalid_email(self, engine, store, email, email_reason):
        outcome = run(engine.submit(email, "mypass"))

        assert outcome.reason == EntryReason.INVALID_EMAIL
        assert outcome.email_reason == email_reason
        assert outcome.states == [
            EntryState.IDLE,
            EntryState.VALIDATING,
            EntryState.REJECTED,
        ]
        assert store.calls == 0
        assert len(store) == 0


class TestConcurrency:
    """Double submits never create two accounts."""

    def test_concurrent_submits_create_one_account(self, engine, store):
        async def submit_many():
            return await asyncio.gather(*[
                engine.submit("race@example.com", "mypass") for _ in range(8)
            ])

        outcomes = run(submit_many())

        assert len(store) == 1
        assert all(o.is_completed for o in outcomes)
        statuses = [o.status for o in outcomes]
        assert statuses.count(EntryStatus.REGISTERED) == 1
        assert statuses.count(EntryStatus.LOGGED_IN) == 7

    def test_concurrent_submits_for_different_emails(self, engine, store):
        async def submit_many():
            return await asyncio.gather(*[
                engine.submit(f"user{i}@example.com", "mypass") for i in range(5)
            ])

        outcomes = run(submit_many())

        assert len(store) == 5
        assert all(o.status == EntryStatus.REGISTERED for o in outcomes)

    def test_locks_are_released(self, engine):
        run(engine.submit("test@example.com", "mypass"))
        assert engine._locks == {}
        assert engine._lock_users == {}

    def test_lost_insert_race_becomes_login(self, hasher, sessions, audit_storage):
        """If the store already has the account the lookup missed, sign in against it."""
        existing = Account(email="race@example.com", password_hash=hasher.hash("mypass"))
        store = StaleReadAccountStorage(existing)
        engine = AccountEntryEngine(
            account_storage=store,
            password_hasher=hasher,
            session_issuer=sessions,
            audit_logger=AuditLogger(audit_storage),
            storage_settings=NO_WAIT_STORAGE,
        )

        outcome = run(engine.submit("race@example.com", "mypass"))

        assert outcome.status == EntryStatus.LOGGED_IN
        assert outcome.states == [
            EntryState.IDLE,
            EntryState.VALIDATING,
            EntryState.CREATING,
            EntryState.AUTHENTICATING,
            EntryState.COMPLETED,
        ]
        assert len(store) == 1

        events = run(audit_storage.get_recent_events())
        types = [e.event_type for e in events]
        assert AuditEventType.ACCOUNT_INSERT_CONFLICT in types

    def test_lost_insert_race_with_wrong_password(self, hasher, sessions):
        existing = Account(email="race@example.com", password_hash=hasher.hash("mypass"))
        engine = AccountEntryEngine(
            account_storage=StaleReadAccountStorage(existing),
            password_hasher=hasher,
            session_issuer=sessions,
            storage_settings=NO_WAIT_STORAGE,
        )

        outcome = run(engine.submit("race@example.com", "otherpass"))
        assert outcome.reason == EntryReason.CREDENTIAL_MISMATCH


class TestSeparateEventLoops:
    """Each Streamlit session runs its own event loop in its own thread."""

    @pytest.fixture
    def slow_engine(self, hasher, sessions):
        store = SlowLookupAccountStorage()
        engine = AccountEntryEngine(
            account_storage=store,
            password_hasher=hasher,
            session_issuer=sessions,
            storage_settings=NO_WAIT_STORAGE,
        )
        return engine, store

    def test_same_email_from_two_threads(self, slow_engine):
        """Neither submission hangs; one registers, the other signs in."""
        engine, store = slow_engine
        outcomes, errors = [], []

        def submit():
            try:
                outcomes.append(asyncio.run(engine.submit("a@b.com", "mypass")))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=submit, daemon=True) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert [t.is_alive() for t in threads] == [False, False]
        assert errors == []
        assert sorted(o.status.value for o in outcomes) == ["logged-in", "registered"]
        assert len(store) == 1
        assert engine._locks == {}

    def test_cancelled_waiter_does_not_keep_the_lock(self, slow_engine):
        engine, store = slow_engine

        async def scenario():
            first = asyncio.create_task(engine.submit("a@b.com", "mypass"))
            await asyncio.sleep(0.05)
            second = asyncio.create_task(engine.submit("a@b.com", "mypass"))
            await asyncio.sleep(0.05)
            second.cancel()
            with pytest.raises(asyncio.CancelledError):
                await second
            await first
            return await engine.submit("a@b.com", "mypass")

        outcome = run(scenario())

        assert outcome.status == EntryStatus.LOGGED_IN
        assert len(store) == 1


class TestStorageFailures:
    """Transient store failures are retried, persistent ones propagate."""

    def test_retries_transient_failures(self, hasher, sessions):
        store = FlakyAccountStorage(failures=2)
        engine = AccountEntryEngine(
            account_storage=store,
            password_hasher=hasher,
            session_issuer=sessions,
            storage_settings=NO_WAIT_STORAGE,
        )

        outcome = run(engine.submit("test@example.com", "mypass"))

        assert outcome.status == EntryStatus.REGISTERED
        assert store.attempts == 3

    def test_gives_up_after_configured_attempts(self, hasher, sessions, audit_storage):
        store = FlakyAccountStorage(failures=10)
        engine = AccountEntryEngine(
            account_storage=store,
            password_hasher=hasher,
            session_issuer=sessions,
            audit_logger=AuditLogger(audit_storage),
            storage_settings=NO_WAIT_STORAGE,
        )

        with pytest.raises(ConnectionError):
            run(engine.submit("test@example.com", "mypass"))

        assert store.attempts == 3
        events = run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.STORAGE_ERROR

    def test_store_without_account_after_conflict(self, hasher, sessions):
        """A conflict the store cannot explain is rejected, not retried forever."""

        class PhantomConflictStorage(InMemoryAccountStorage):
            async def insert(self, account):
                raise DuplicateError("conflict")

        engine = AccountEntryEngine(
            account_storage=PhantomConflictStorage(),
            password_hasher=hasher,
            session_issuer=sessions,
            storage_settings=NO_WAIT_STORAGE,
        )

        outcome = run(engine.submit("test@example.com", "mypass"))
        assert outcome.reason == EntryReason.STORE_INSERT_RACE


class TestAuditTrail:
    """Each outcome leaves exactly one audit event; passwords never appear."""

    def test_registered_then_logged_in(self, engine, audit_storage):
        run(engine.submit("test@example.com", "mypass"))
        run(engine.submit("test@example.com", "mypass"))

        events = run(audit_storage.get_recent_events())
        assert [e.event_type for e in events] == [
            AuditEventType.ACCOUNT_LOGGED_IN,
            AuditEventType.ACCOUNT_REGISTERED,
        ]

    def test_rejection_is_audited(self, engine, audit_storage):
        run(engine.submit("abc", "mypass"))

        events = run(audit_storage.get_recent_events())
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.ACCOUNT_ENTRY_REJECTED
        assert events[0].details["reason"] == "invalid-email"
        assert events[0].details["email_reason"] == "malformed-structure"

    def test_password_never_logged(self, engine, audit_storage):
        run(engine.submit("test@example.com", "s3cret-pass"))
        run(engine.submit("test@example.com", "wrong-pass"))

        for event in run(audit_storage.get_recent_events()):
            assert "s3cret-pass" not in str(event.to_log_dict())
            assert "wrong-pass" not in str(event.to_log_dict())

"""
Account Entry Engine

One entry point for both "register" and "sign in".

Flow:
1. Password present?        → else REJECTED (missing-password)
2. Email syntactically ok?  → else REJECTED (invalid-email)
3. Look up the email (under a per-email lock)
   - unknown → CREATING       → account + session → "registered"
   - known   → AUTHENTICATING → session → "logged-in"
                               or REJECTED (credential-mismatch)

CRITICAL: An email that is already registered is NOT an error. Submitting
the registration form with the right password simply signs the user in.
There is never more than one account per email:
- submissions for the same email are serialized by a per-email
  threading.Lock, so callers on different event loops (one per Streamlit
  session thread) wait on each other too
- the store rejects duplicate inserts, and the engine treats a lost
  insert race as a sign in attempt against the winning account

Steps 1 and 2 never touch the store.
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.audit import AuditLogger, create_correlation_id
from src.config import get_settings
from src.config.settings import StorageSettings
from src.models.account import (
    Account,
    EntryOutcome,
    EntryReason,
    EntryState,
    EntryStatus,
)
from src.services.security import (
    JWTSessionIssuer,
    PasslibPasswordHasher,
    PasswordHasher,
    SessionIssuer,
)
from src.services.storage import (
    AccountStorageInterface,
    ConnectionError,
    DuplicateError,
    StorageError,
)
from src.validation.email import EmailSyntaxValidator


class AccountEntryEngine:
    """
    Registers new accounts and signs in existing ones through `submit`.

    Safe to call concurrently; calls for different emails do not wait
    on each other.
    """

    def __init__(
        self,
        account_storage: AccountStorageInterface,
        password_hasher: Optional[PasswordHasher] = None,
        session_issuer: Optional[SessionIssuer] = None,
        email_validator: Optional[EmailSyntaxValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        storage_settings: Optional[StorageSettings] = None,
    ):
        self._storage = account_storage
        self._hasher = password_hasher or PasslibPasswordHasher()
        self._sessions = session_issuer or JWTSessionIssuer()
        self._email_validator = email_validator or EmailSyntaxValidator()
        self._audit_logger = audit_logger
        self._storage_settings = storage_settings or get_settings().storage

        # Per-email locks, dropped once nobody holds or waits for them
        self._locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._registry_lock = threading.Lock()

    async def submit(
        self,
        email: Optional[str],
        password: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> EntryOutcome:
        """
        Register or sign in.

        Args:
            email: Email address as typed in the form
            password: Plaintext password; None or "" is rejected

        Returns:
            EntryOutcome, completed ("registered" or "logged-in") with a
            session, or rejected with a reason

        Raises:
            StorageError: If the account store keeps failing after retries
        """
        correlation_id = correlation_id or create_correlation_id()
        email = email or ""
        states = [EntryState.IDLE]

        if not password:
            return await self._reject(
                email, EntryReason.MISSING_PASSWORD, states, correlation_id
            )

        states.append(EntryState.VALIDATING)
        validation = self._email_validator.validate(email)
        if not validation.is_valid:
            return await self._reject(
                email,
                EntryReason.INVALID_EMAIL,
                states,
                correlation_id,
                email_reason=validation.reason,
            )

        async with self._email_lock(email):
            try:
                return await self._enter(email, password, states, correlation_id)
            except StorageError as e:
                if self._audit_logger:
                    await self._audit_logger.log_storage_error(
                        operation="account_entry",
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                raise

    async def _enter(
        self,
        email: str,
        password: str,
        states: list[EntryState],
        correlation_id: UUID,
    ) -> EntryOutcome:
        account = await self._find(email)

        if account is None:
            states.append(EntryState.CREATING)
            account = Account(email=email, password_hash=self._hasher.hash(password))
            try:
                await self._insert(account)
            except DuplicateError:
                # Someone else created this account between our lookup and
                # insert. Their account wins; try signing in against it.
                if self._audit_logger:
                    await self._audit_logger.log_insert_conflict(
                        email=email,
                        correlation_id=correlation_id,
                    )
                account = await self._find(email)
                if account is None:
                    return await self._reject(
                        email, EntryReason.STORE_INSERT_RACE, states, correlation_id
                    )
            else:
                session = self._sessions.issue(email)
                if self._audit_logger:
                    await self._audit_logger.log_account_registered(
                        account_id=account.id,
                        email=email,
                        correlation_id=correlation_id,
                    )
                return EntryOutcome.completed_with(
                    email, EntryStatus.REGISTERED, session, states
                )

        states.append(EntryState.AUTHENTICATING)
        if not self._hasher.verify(password, account.password_hash):
            return await self._reject(
                email, EntryReason.CREDENTIAL_MISMATCH, states, correlation_id
            )

        session = self._sessions.issue(email)
        if self._audit_logger:
            await self._audit_logger.log_account_logged_in(
                account_id=account.id,
                email=email,
                correlation_id=correlation_id,
            )
        return EntryOutcome.completed_with(email, EntryStatus.LOGGED_IN, session, states)

    async def _reject(
        self,
        email: str,
        reason: EntryReason,
        states: list[EntryState],
        correlation_id: UUID,
        email_reason=None,
    ) -> EntryOutcome:
        outcome = EntryOutcome.rejected_with(
            email, reason, states, email_reason=email_reason
        )
        if self._audit_logger:
            await self._audit_logger.log_entry_rejected(
                email=email,
                reason=reason.value,
                correlation_id=correlation_id,
                email_reason=email_reason.value if email_reason else None,
            )
        return outcome

    # =========================================================================
    # STORE ACCESS
    # =========================================================================

    def _retrying(self) -> AsyncRetrying:
        settings = self._storage_settings
        return AsyncRetrying(
            stop=stop_after_attempt(settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=settings.retry_wait_min_seconds,
                max=settings.retry_wait_max_seconds,
            ),
            retry=retry_if_exception_type(ConnectionError),
            reraise=True,
        )

    async def _find(self, email: str) -> Optional[Account]:
        return await self._retrying()(self._storage.find, email)

    async def _insert(self, account: Account) -> bool:
        return await self._retrying()(self._storage.insert, account)

    @asynccontextmanager
    async def _email_lock(self, email: str) -> AsyncIterator[None]:
        with self._registry_lock:
            lock = self._locks.setdefault(email, threading.Lock())
            self._lock_users[email] = self._lock_users.get(email, 0) + 1
        try:
            if not lock.acquire(blocking=False):
                await self._acquire_in_thread(lock)
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._registry_lock:
                self._lock_users[email] -= 1
                if not self._lock_users[email]:
                    del self._lock_users[email]
                    del self._locks[email]

    @staticmethod
    async def _acquire_in_thread(lock: threading.Lock) -> None:
        # A blocking acquire would stall the event loop; wait in a worker thread
        acquiring = asyncio.ensure_future(asyncio.to_thread(lock.acquire))
        try:
            await asyncio.shield(acquiring)
        except asyncio.CancelledError:
            # The worker still gets the lock eventually; hand it straight back
            acquiring.add_done_callback(lambda _: lock.release())
            raise

"""
Account Models for Firetrack

These models describe everything that flows through account entry:
the email check, the stored account, the issued session and the
outcome handed back to the front end.

DESIGN DECISION: Register and login share one entry point.
The outcome says which branch was taken; "email already registered"
is never an error on its own.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS - Stable, machine-readable reasons
# =============================================================================

class EmailErrorReason(str, Enum):
    """
    Why an email address was rejected.

    Values are part of the public contract. Front ends map them to
    messages, tests compare against them.
    """
    MALFORMED_STRUCTURE = "malformed-structure"
    MALFORMED_LOCAL_PART = "malformed-local-part"
    MALFORMED_DOMAIN = "malformed-domain"
    IP_LITERAL_OUT_OF_RANGE = "ip-literal-out-of-range"


class EntryReason(str, Enum):
    """Why an account entry submission was rejected."""
    MISSING_PASSWORD = "missing-password"
    INVALID_EMAIL = "invalid-email"
    CREDENTIAL_MISMATCH = "credential-mismatch"
    STORE_INSERT_RACE = "store-insert-race"


class EntryStatus(str, Enum):
    """Which branch a successful submission took."""
    REGISTERED = "registered"
    LOGGED_IN = "logged-in"


class EntryState(str, Enum):
    """States of the account entry state machine."""
    IDLE = "idle"
    VALIDATING = "validating"
    REJECTED = "rejected"
    CREATING = "creating"
    AUTHENTICATING = "authenticating"
    COMPLETED = "completed"


# =============================================================================
# EMAIL VALIDATION
# =============================================================================

class EmailValidationResult(BaseModel):
    """Result of validating one candidate email address."""
    model_config = ConfigDict(frozen=True)

    candidate: str
    is_valid: bool
    reason: Optional[EmailErrorReason] = None
    message: Optional[str] = None

    @classmethod
    def valid(cls, candidate: str) -> "EmailValidationResult":
        return cls(candidate=candidate, is_valid=True)

    @classmethod
    def invalid(
        cls,
        candidate: str,
        reason: EmailErrorReason,
        message: str,
    ) -> "EmailValidationResult":
        return cls(
            candidate=candidate,
            is_valid=False,
            reason=reason,
            message=message,
        )


# =============================================================================
# ACCOUNT & SESSION
# =============================================================================

class Account(BaseModel):
    """
    A registered account.

    CRITICAL: The email is stored exactly as submitted and is the identity
    key. There is at most one Account per email.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Email address (unique, case-preserving)"
    )
    password_hash: str = Field(
        ...,
        min_length=1,
        description="One-way hash of the password"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the account was created"
    )


class Session(BaseModel):
    """A session issued after a successful registration or login."""
    model_config = ConfigDict(frozen=True)

    account_email: str = Field(
        ...,
        description="Email of the account this session belongs to"
    )
    issued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    expires_at: Optional[datetime] = None
    token: str = Field(
        default="",
        description="Signed token for the transport layer"
    )


# =============================================================================
# ENTRY OUTCOME
# =============================================================================

class EntryOutcome(BaseModel):
    """
    Result of `AccountEntryEngine.submit`.

    Either rejected (with a reason) or completed (with a status and a
    session). `states` records the path through the state machine.
    """

    email: str
    rejected: bool
    reason: Optional[EntryReason] = None
    email_reason: Optional[EmailErrorReason] = None
    status: Optional[EntryStatus] = None
    session: Optional[Session] = None
    states: list[EntryState] = Field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return not self.rejected

    @property
    def final_state(self) -> EntryState:
        return EntryState.REJECTED if self.rejected else EntryState.COMPLETED

    @classmethod
    def rejected_with(
        cls,
        email: str,
        reason: EntryReason,
        states: list[EntryState],
        email_reason: Optional[EmailErrorReason] = None,
    ) -> "EntryOutcome":
        return cls(
            email=email,
            rejected=True,
            reason=reason,
            email_reason=email_reason,
            states=[*states, EntryState.REJECTED],
        )

    @classmethod
    def completed_with(
        cls,
        email: str,
        status: EntryStatus,
        session: Session,
        states: list[EntryState],
    ) -> "EntryOutcome":
        return cls(
            email=email,
            rejected=False,
            status=status,
            session=session,
            states=[*states, EntryState.COMPLETED],
        )

"""Planner error classes.

Every exception raised by the planner core and its collaborators derives from
PlannerError so the HTTP layer can map the whole family in one place.
"""

from __future__ import annotations

from enum import Enum


class PlannerError(Exception):
    """Base exception for all planner errors."""

    pass


# =============================================================================
# Authentication
# =============================================================================


class AuthErrorCode(Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    EMAIL_IN_USE = "email_in_use"
    WEAK_PASSWORD = "weak_password"
    INVALID_EMAIL = "invalid_email"
    POPUP_CLOSED = "popup_closed"
    MISSING_FIELDS = "missing_fields"
    UNKNOWN = "unknown"


AUTH_ERROR_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.INVALID_CREDENTIAL: "Invalid email or password.",
    AuthErrorCode.EMAIL_IN_USE: "An account with this email already exists. Please log in.",
    AuthErrorCode.WEAK_PASSWORD: "Password is too weak. It should be at least 6 characters long.",
    AuthErrorCode.INVALID_EMAIL: "Please enter a valid email address.",
    AuthErrorCode.POPUP_CLOSED: "Sign-in popup was closed before completion.",
    AuthErrorCode.MISSING_FIELDS: "Please enter both email and password.",
    AuthErrorCode.UNKNOWN: "An unexpected error occurred. Please try again.",
}


class AuthError(PlannerError):
    """Raised when a principal cannot be authenticated.

    Always retryable: the user re-submits the form.
    """

    def __init__(self, code: AuthErrorCode, detail: str | None = None):
        self.code = code
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Short human-readable message suitable for the sign-in form."""
        return AUTH_ERROR_MESSAGES[self.code]


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(PlannerError):
    """Base exception for configuration errors. Fatal at startup."""

    pass


class MissingSettingError(ConfigError):
    """Raised when a required backend setting is not provided."""

    pass


class InvalidSettingError(ConfigError):
    """Raised when a setting value fails validation."""

    pass


# =============================================================================
# Document store
# =============================================================================


class StoreError(PlannerError):
    """Raised when the document store cannot complete an operation."""

    pass


class DocumentNotFoundError(StoreError):
    """Raised when a patch or delete targets a missing document."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} does not exist")


class DocumentExistsError(StoreError):
    """Raised when create-if-absent finds an existing document."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} already exists")


# =============================================================================
# Structural integrity
# =============================================================================


class StructuralIntegrityError(PlannerError):
    """Base class for data-corruption hazards that are surfaced, never silent."""

    pass


class ScheduleIdCollisionError(StructuralIntegrityError):
    """Raised when no free schedule identifier could be drawn."""

    pass


class VersionConflictError(StructuralIntegrityError):
    """Raised when a check-and-set write finds a newer version in the store."""

    def __init__(self, collection: str, doc_id: str, expected: int, actual: int):
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Document {collection}/{doc_id} changed since it was read "
            f"(expected version {expected}, found {actual})"
        )


class IntegrityViolationError(StructuralIntegrityError):
    """Raised when a document about to be written breaks a structural invariant."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class ScheduleCreationError(StructuralIntegrityError):
    """Raised when schedule creation failed part-way and was rolled back."""

    pass


# =============================================================================
# Lookup and access
# =============================================================================


class ScheduleNotFoundError(PlannerError):
    """Raised when a schedule id does not resolve to a document."""

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"Schedule {schedule_id} not found")


class AccountNotFoundError(PlannerError):
    """Raised when an identity has not completed onboarding."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"No account for user {uid}")


class AccessDeniedError(PlannerError):
    """Raised when an identity is neither owner nor collaborator."""

    pass


# =============================================================================
# Validation
# =============================================================================


class InvalidCellError(PlannerError):
    """Raised for a (camp, week) coordinate outside the schedule grid."""

    pass


class UnknownKidError(PlannerError):
    """Raised when an attendee list names a kid missing from allKids."""

    pass


class KidNotInRosterError(PlannerError):
    """Raised when creating a schedule for a kid the account does not have."""

    pass


class DuplicateScheduleError(PlannerError):
    """Raised when the kid already has a schedule visible to the account."""

    pass


class AccountExistsError(PlannerError):
    """Raised when onboarding an identity that already has an account."""

    pass

"""Custom exception hierarchy for loan-tracker.

Every error carries an HTTP-equivalent ``status_code`` and a short
machine-readable ``code`` so the API boundary can turn it into a
structured response without a lookup table.
"""


class LoanTrackerError(Exception):
    """Base exception for all loan-tracker errors."""

    status_code = 500
    code = "internal_error"
    retryable = False


class ValidationError(LoanTrackerError):
    """Raised when request input is missing, malformed or out of range."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(LoanTrackerError):
    """Raised when the actor may not perform the attempted action."""

    status_code = 403
    code = "forbidden"


class AuthenticationError(AuthorizationError):
    """Raised when a credential cannot be verified."""

    status_code = 401
    code = "unauthorized"


class SelfReviewError(AuthorizationError):
    """Raised when a requester tries to approve or reject their own pending change."""

    status_code = 400
    code = "self_review"


class EntityNotFoundError(LoanTrackerError):
    """Raised when a loan, sub-record or pending change does not exist."""

    status_code = 404
    code = "not_found"


class DecryptionError(LoanTrackerError):
    """Raised when an encrypted bundle fails authentication."""

    code = "decryption_failed"


class ConcurrencyConflict(LoanTrackerError):
    """Raised when a versioned write lost the race against another writer."""

    status_code = 409
    code = "version_conflict"
    retryable = True


class StateConflict(LoanTrackerError):
    """Raised when an entity is in the wrong state for the operation."""

    status_code = 409
    code = "state_conflict"


class ChangeAlreadyResolvedError(StateConflict):
    """Raised when a pending change was already approved or rejected."""

    status_code = 404
    code = "change_already_resolved"


class LoanNotPendingError(StateConflict):
    """Raised when accepting or rejecting a loan that is no longer pending."""

    status_code = 400
    code = "loan_not_pending"


class ConfigurationError(LoanTrackerError):
    """Raised when configuration is invalid or missing."""

    code = "configuration_error"


class StoreError(LoanTrackerError):
    """Raised when the backing store fails."""

    code = "store_error"


class SinkError(LoanTrackerError):
    """Raised when a notification sink operation fails."""

    code = "sink_error"

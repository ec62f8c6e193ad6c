"""
Business errors raised by the voting core.

Each error carries a stable machine-readable ``code`` and the HTTP status the
API layer answers with. Resolver and validation errors are terminal: callers
must not retry them.
"""

from typing import Any, Optional


class VoteServiceError(Exception):
    """Base class for all voting core errors."""

    code = "vote_service_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.code}


class InvalidFingerprintError(VoteServiceError):
    """The device fingerprint has no usable user agent."""

    code = "invalid_fingerprint"
    status_code = 422


class InvalidOptionRefError(VoteServiceError):
    """The submitted option reference is not a positive integer."""

    code = "invalid_option_ref"
    status_code = 422


class OptionNotFoundError(VoteServiceError):
    code = "option_not_found"
    status_code = 404


class OptionNotAvailableForSubjectError(VoteServiceError):
    """The subject offers no option for the requested semantic key."""

    code = "option_not_available_for_subject"
    status_code = 400


class SubjectOptionMismatchError(VoteServiceError):
    """
    A global option id belongs to a different subject than the one claimed.

    The request is rejected rather than redirected to the option's real subject.
    """

    code = "subject_option_mismatch"
    status_code = 400


class SubjectNotFoundError(VoteServiceError):
    code = "subject_not_found"
    status_code = 404


class SubjectClosedError(VoteServiceError):
    """The subject is outside its voting window."""

    code = "subject_closed"
    status_code = 403


class AlreadyVotedError(VoteServiceError):
    """The identity already holds a vote for this subject."""

    code = "already_voted"
    status_code = 409

    def __init__(self, message: str, existing_vote_id: Optional[str] = None, **context: Any):
        super().__init__(message, **context)
        self.existing_vote_id = existing_vote_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.existing_vote_id:
            data["vote_id"] = self.existing_vote_id
        return data


class InvalidTokenError(VoteServiceError):
    """A sealed session cookie could not be opened."""

    code = "invalid_token"
    status_code = 401


class StorageUnavailableError(VoteServiceError):
    code = "storage_unavailable"
    status_code = 503


class CatalogIntegrityError(VoteServiceError):
    """Catalog ids overlap the reserved semantic key range."""

    code = "catalog_integrity"
    status_code = 500


class ConfigVersionConflictError(VoteServiceError):
    code = "config_version_conflict"
    status_code = 409


class UnknownSettingError(VoteServiceError):
    code = "unknown_setting"
    status_code = 404

# Filename: bantconfirm/errors.py
# Error taxonomy shared by the services and rendered by the API handlers.


class BantConfirmError(Exception):
    """Base class for every error the services raise on purpose."""

    kind = "error"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AuthError(BantConfirmError):
    """Credentials rejected or session lookup failed. Never retried automatically."""

    kind = "auth_error"
    status_code = 401


class ForbiddenError(AuthError):
    kind = "forbidden"
    status_code = 403


class PersistenceError(BantConfirmError):
    """The store rejected a read or a write."""

    kind = "persistence_error"
    status_code = 503


class QualificationError(BantConfirmError):
    """The lead qualifier could not produce a structured result."""

    kind = "qualification_error"
    status_code = 502


class ValidationError(BantConfirmError):
    """A local precondition failed; raised before any network or database call."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(BantConfirmError):
    kind = "not_found"
    status_code = 404


class ConflictError(BantConfirmError):
    """Concurrent modification detected, or the same action is already in flight."""

    kind = "conflict"
    status_code = 409

"""Error taxonomy shared by services and HTTP handlers.

Every error carries the HTTP status it maps to and a public message that
is safe to return to clients. Store exceptions are translated here so
services never leak driver detail into responses.
"""

from sqlalchemy.exc import IntegrityError

# SQLSTATE / vendor codes that mean "unique or primary key violated".
_UNIQUE_CODES = {"23505", "1062", "2627", "2601"}
_UNIQUE_MARKERS = ("unique constraint", "duplicate entry", "duplicate key", "unique key", "primary key constraint")


class RegistrationError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RegistrationError):
    """Required field(s) missing."""
    status_code = 400


class ConflictError(RegistrationError):
    """A unique constraint was violated."""
    status_code = 400


class NotFoundError(RegistrationError):
    status_code = 404


class InternalError(RegistrationError):
    status_code = 500


def is_unique_violation(exc: Exception) -> bool:
    """Return True if `exc` is the store reporting a duplicate key."""
    if not isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is None and getattr(orig, "args", None):
        code = orig.args[0]
    if code is not None and str(code) in _UNIQUE_CODES:
        return True
    text = str(orig).lower()
    return any(marker in text for marker in _UNIQUE_MARKERS)


def translate_store_error(exc: Exception, conflict_message: str, failure_message: str) -> RegistrationError:
    """Map a store exception to `ConflictError` or `InternalError`."""
    if isinstance(exc, RegistrationError):
        return exc
    if is_unique_violation(exc):
        return ConflictError(conflict_message)
    return InternalError(failure_message)

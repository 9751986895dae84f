"""Catalog error taxonomy.

Each class carries the HTTP status and stable error code the API boundary
renders into an ErrorResponse. Raise these from the catalog layer; never
return error dicts from it.
"""

from __future__ import annotations


class CatalogError(Exception):
    status_code: int = 400
    code: str = "bad_request"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Malformed or missing input. The message names the offending field(s) or ids."""

    status_code = 422
    code = "validation_error"


class NotFoundError(CatalogError):
    status_code = 404
    code = "not_found"


class ConflictError(CatalogError):
    """A state transition was attempted on a submission not in the expected state."""

    status_code = 409
    code = "conflict"


class AuthorizationError(CatalogError):
    status_code = 403
    code = "forbidden"


class AuthenticationRequired(AuthorizationError):
    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class StoreError(CatalogError):
    """Persistence failure. The message is generic; details are only logged."""

    status_code = 500
    code = "internal_error"
    retryable = True

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(message)

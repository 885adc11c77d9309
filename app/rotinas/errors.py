"""
Error taxonomy for the record-keeping API.

Every rejection raised by the services is a RotinasError; the app-level
error handler renders it as JSON with `status_code` and `code`. None of
these are retried by the server. Conflict is the one case where the caller
should refetch and try again.
"""
from __future__ import annotations


class RotinasError(RuntimeError):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, field: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return body


class Unauthenticated(RotinasError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(RotinasError):
    status_code = 403
    code = "forbidden"


class InvalidPayload(RotinasError):
    status_code = 400
    code = "invalid_payload"


class StatusMismatch(RotinasError):
    status_code = 400
    code = "status_mismatch"


class NotFound(RotinasError):
    status_code = 404
    code = "not_found"


class Conflict(RotinasError):
    status_code = 409
    code = "conflict"


class UsersServiceError(RotinasError):
    status_code = 502
    code = "upstream_error"

"""
errors.py — AppError base class and error code registry.

Every error returned by the Finance Tracker API carries a code defined here.
Service, middleware and route code raise AppError; the global handlers in
finance_tracker/__init__.py turn it into the response envelope:

    {"success": false, "error": "<message>", "code": "<CODE>", "field": "..."}

Error codes are a contract with the client. Messages are human-readable prose
and may be reworded at any time.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "success": False,
            "error":   self.message,
            "code":    self.code,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response; do not rename them.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Input Errors (400) ─────────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_ID                 = "INVALID_ID"
    INVALID_RESET_TOKEN        = "INVALID_RESET_TOKEN"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed
    NOT_AUTHENTICATED          = "NOT_AUTHENTICATED"      # 401
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    CSRF_INVALID               = "CSRF_INVALID"           # 403
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                  = "NOT_FOUND"
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    WORKSPACE_NOT_FOUND        = "WORKSPACE_NOT_FOUND"
    ITEM_NOT_FOUND             = "ITEM_NOT_FOUND"
    CYCLE_NOT_FOUND            = "CYCLE_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    EMAIL_NOT_SET              = "EMAIL_NOT_SET"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_USERNAME         = "DUPLICATE_USERNAME"
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"

    # ── Throttling (429) ───────────────────────────────────────────────────
    RATE_LIMITED               = "RATE_LIMITED"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"

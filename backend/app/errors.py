"""
errors.py — AppError base class and error code registry.

Every error returned by the Wayfarer API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - A record owned by someone else is reported as *_NOT_FOUND (404), never 403.
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
            "error":   self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class IntegrationError(AppError):
    """
    Raised by the external adapters (Mapbox, S3) for any provider failure.

    Provider exception types never cross the adapter boundary; the message is
    generic and the original exception is chained for the server log only.
    """

    def __init__(self, message: str = "An external service request failed.") -> None:
        super().__init__(ErrorCode.INTEGRATION_ERROR, message, 502)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    VALIDATION_ERROR           = "VALIDATION_ERROR"
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_FILE_TYPE          = "INVALID_FILE_TYPE"
    SELF_FRIEND_REQUEST        = "SELF_FRIEND_REQUEST"
    NOT_FRIENDS                = "NOT_FRIENDS"
    RESET_TOKEN_INVALID        = "RESET_TOKEN_INVALID"
    VERIFICATION_TOKEN_INVALID = "VERIFICATION_TOKEN_INVALID"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_FRIENDS            = "ALREADY_FRIENDS"
    FRIEND_REQUEST_EXISTS      = "FRIEND_REQUEST_EXISTS"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    OWNER_CANNOT_LEAVE         = "OWNER_CANNOT_LEAVE"
    PLACE_HAS_REVIEWS          = "PLACE_HAS_REVIEWS"
    INVALID_STATUS_TRANSITION  = "INVALID_STATUS_TRANSITION"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                  = "NOT_FOUND"
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    ROUTE_NOT_FOUND            = "ROUTE_NOT_FOUND"
    TRIP_NOT_FOUND             = "TRIP_NOT_FOUND"
    PLACE_NOT_FOUND            = "PLACE_NOT_FOUND"
    REVIEW_NOT_FOUND           = "REVIEW_NOT_FOUND"
    FRIEND_REQUEST_NOT_FOUND   = "FRIEND_REQUEST_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"
    MESSAGE_NOT_FOUND          = "MESSAGE_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    NOTIFICATION_NOT_FOUND     = "NOTIFICATION_NOT_FOUND"
    OFFLINE_MAP_NOT_FOUND      = "OFFLINE_MAP_NOT_FOUND"
    SAFETY_ALERT_NOT_FOUND     = "SAFETY_ALERT_NOT_FOUND"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"

    # ── Routing (405) ──────────────────────────────────────────────────────
    METHOD_NOT_ALLOWED         = "METHOD_NOT_ALLOWED"

    # ── Payload size (413) ─────────────────────────────────────────────────
    PAYLOAD_TOO_LARGE          = "PAYLOAD_TOO_LARGE"

    # ── Upstream / System Errors (5xx) ─────────────────────────────────────
    INTEGRATION_ERROR          = "INTEGRATION_ERROR"   # 502
    INTERNAL_ERROR             = "INTERNAL_ERROR"      # 500


def not_found(code: str, resource: str, resource_id) -> AppError:
    """Builds the 404 used for both missing and not-owned records."""
    return AppError(code, f"{resource} {resource_id} not found.", 404)

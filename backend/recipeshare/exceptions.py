"""
Recipe Share Backend — Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for every failure the services raise.
Why:   Services stay free of HTTP concerns; the global handlers in main.py
       turn each exception into the right status code and a uniform JSON body.
How:   Each exception class carries a user-facing message and an optional
       context dict (logged, and returned as `details` for client errors).
       `status_code` and `error_code` are class attributes so the handler
       can map the whole hierarchy with one lookup.
Who:   Raised by services, dependencies and middleware; caught by handlers.

Exception Hierarchy:
    RecipeShareError (base)                  → 500
    ├── ValidationError                      → 400 (client can fix)
    ├── AuthorizationError                   → 403 (not owner / not admin)
    │   └── AuthenticationError              → 401 (no or bad token)
    ├── SelfSaveError                        → 400 (saving your own recipe)
    ├── NotFoundError                        → 404
    ├── DuplicateKeyError                    → 400 (unique constraint hit)
    ├── ImageProcessingError                 → 500 (image could not be optimized)
    ├── FileStorageError                     → 500
    │   └── UploadError                      → 500 (image store rejected upload)
    ├── AllocationExhausted                  → 500 (no free handle found)
    ├── CommitFailure                        → 500 (transaction commit failed)
    └── RateLimitExceededError               → 429
"""

import traceback
from typing import Any, Dict, Optional

from recipeshare.config import settings
from recipeshare.middleware.request_id import request_id_var


class RecipeShareError(Exception):
    """
    Base exception for all Recipe Share application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RecipeShareError):
    """
    Raised when client input fails validation.

    When:    Missing required fields, empty arrays, malformed JSON form fields,
             bad email/password at sign-up, oversized or empty image.
    HTTP:    400 Bad Request
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthorizationError(RecipeShareError):
    """
    Raised when the caller may not perform the action.

    When:    Updating/deleting someone else's recipe, admin-only listing.
    HTTP:    403 Forbidden
    """

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You are not authorized to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(AuthorizationError):
    """
    Raised when the caller has no valid identity.

    A subclass of AuthorizationError so that code guarding an action can
    treat "anonymous" and "not allowed" uniformly, while the handler still
    answers 401 for the former.
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Unauthorized, no token provided",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SelfSaveError(RecipeShareError):
    """Raised when a creator tries to save their own recipe."""

    status_code = 400
    error_code = "self_save"

    def __init__(
        self,
        message: str = "You cannot save your own recipe",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(RecipeShareError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; the service layer converts
    that into this exception so routes never check for None themselves.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DuplicateKeyError(RecipeShareError):
    """
    Raised when a write violates a unique constraint.

    Typical source: two sign-ups racing for the same handle or email, or two
    concurrent saves of the same recipe by the same user.
    """

    status_code = 400
    error_code = "duplicate_key"

    def __init__(
        self,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        label = field or "a unique field"
        message = f"Duplicate value entered for {label}. Please use another value."
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ImageProcessingError(RecipeShareError):
    """Raised when an uploaded image cannot be decoded or re-encoded."""

    error_code = "image_processing_error"

    def __init__(
        self,
        message: str = "Failed to process image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(RecipeShareError):
    """
    Raised when image store operations fail.

    What:    Could not write or delete a stored image.
    HTTP:    500 Internal Server Error
    Recovery: the full OS error is logged; the client only sees a generic message.
    """

    error_code = "storage_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UploadError(FileStorageError):
    """Raised when the image store rejects an upload. Nothing has been written."""

    error_code = "upload_error"

    def __init__(
        self,
        message: str = "Failed to upload image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AllocationExhausted(RecipeShareError):
    """Raised when every candidate handle for a new user is already taken."""

    error_code = "handle_allocation_failed"

    def __init__(
        self,
        base: str = "",
        attempts: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx.update({"base": base, "attempts": attempts})
        super().__init__(
            message="Failed to generate unique username",
            context=ctx,
        )


class CommitFailure(RecipeShareError):
    """Raised when a transaction body succeeded but the commit did not."""

    error_code = "commit_failed"

    def __init__(
        self,
        message: str = "The operation could not be saved. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(RecipeShareError):
    """
    Raised when a client exhausts its token bucket.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 10,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before trying again."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


# ── Response Envelope ─────────────────────────────────────────────────────

def error_body(
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """
    The uniform error envelope shared by the exception handlers and the
    rate limiter: {success, error, message, details?, requestId, stack?}.
    """
    body: Dict[str, Any] = {
        "success": False,
        "error": error,
        "message": message,
        "requestId": request_id_var.get(""),
    }
    if details:
        body["details"] = details
    if exc is not None and not settings.is_production:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body

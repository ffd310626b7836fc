"""
Social service — domain-specific HTTP exceptions.

All exceptions use preset status codes, detail messages and a stable machine
``code`` so that callers never need to specify these at the call site.  The
shared http_exception_handler renders them in the standard error envelope.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    code: str = "http_error"

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(status_code=status_code, detail=detail)


# ── Validation ────────────────────────────────────────────────────────────────

class CannotFollowSelf(DomainError):
    code = "cannot_follow_self"

    def __init__(self) -> None:
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, "You cannot follow yourself.")


class InvalidUsername(DomainError):
    code = "invalid_username"

    def __init__(self) -> None:
        super().__init__(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Usernames are 3-30 characters: letters, digits, '.' and '_'.",
        )


# ── Not found ─────────────────────────────────────────────────────────────────

class UserNotFound(DomainError):
    code = "user_not_found"

    def __init__(self) -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, "User not found.")


class RequestNotFound(DomainError):
    code = "request_not_found"

    def __init__(self) -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, "Follow request not found.")


class NotificationNotFound(DomainError):
    code = "notification_not_found"

    def __init__(self) -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, "Notification not found.")


# ── Conflicting state ─────────────────────────────────────────────────────────

class AlreadyFollowing(DomainError):
    code = "already_following"

    def __init__(self) -> None:
        super().__init__(status.HTTP_409_CONFLICT, "You are already following this user.")


class RequestAlreadyResolved(DomainError):
    """Accepting a rejected request, or re-requesting while an accepted one stands."""

    code = "request_already_resolved"

    def __init__(self, status_value: str) -> None:
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"This follow request has already been {status_value}.",
        )


class UsernameTaken(DomainError):
    code = "username_taken"

    def __init__(self) -> None:
        super().__init__(status.HTTP_409_CONFLICT, "This username is already taken.")


# ── Authorization ─────────────────────────────────────────────────────────────

class NotRequestTarget(DomainError):
    code = "not_request_target"

    def __init__(self) -> None:
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Only the user who received this follow request can resolve it.",
        )


class PrivateAccount(DomainError):
    """Follow lists of a private account are visible to its followers only."""

    code = "private_account"

    def __init__(self) -> None:
        super().__init__(status.HTTP_403_FORBIDDEN, "This account is private.")


class AdminRequired(DomainError):
    code = "admin_required"

    def __init__(self) -> None:
        super().__init__(status.HTTP_403_FORBIDDEN, "Administrator access required.")


# ── Store failures ────────────────────────────────────────────────────────────

class TransientStoreError(DomainError):
    """The store kept failing after the bounded read retry gave up."""

    code = "store_unavailable"

    def __init__(self) -> None:
        super().__init__(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "The service is temporarily unavailable. Please try again shortly.",
        )


class FollowRequestNotApplied(DomainError):
    """Accepting a request failed part-way; everything was rolled back and it is still pending."""

    code = "follow_request_not_applied"

    def __init__(self) -> None:
        super().__init__(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "The follow request could not be accepted. It is still pending; please retry.",
        )

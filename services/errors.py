"""Error taxonomy for the OTP / token / registration lifecycle.

Every error carries an HTTP status, a stable machine code and a message safe
to show to the caller. main.py turns them into JSON responses.
"""


class AuthFlowError(Exception):
    status_code = 400
    code = "error"
    message = "Request failed"

    def __init__(self, message: str = None, code: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if code:
            self.code = code


class ValidationFailed(AuthFlowError):
    code = "validation_error"
    message = "Invalid request"


class NotFound(AuthFlowError):
    code = "not_found"
    message = "Not found"


class UserNotFound(NotFound):
    status_code = 404
    code = "user_not_found"
    message = "User not found"


class Expired(AuthFlowError):
    code = "expired"
    message = "Expired"


class RateLimited(AuthFlowError):
    status_code = 429
    code = "rate_limited"
    message = "Try again later"


class Conflict(AuthFlowError):
    # The public API reports duplicates as a plain 400.
    code = "conflict"
    message = "Already exists"


class Unauthenticated(AuthFlowError):
    status_code = 401
    code = "unauthenticated"
    message = "Token required"


class UpstreamFailure(AuthFlowError):
    status_code = 500
    code = "upstream_failure"
    message = "Internal server error"


class MailDeliveryError(Exception):
    """Raised by the mailer when the relay rejects or cannot be reached."""


class DirectoryError(Exception):
    """Raised by the user directory when the document cannot be read or written."""

"""Drive bridge exceptions.

Every error the core raises derives from DriveBridgeError and carries the
HTTP status and machine code the API layer reports for it.
"""


class DriveBridgeError(Exception):
    """Base exception for drive-bridge errors."""

    status_code = 500
    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DriveBridgeError):
    """Raised for bad or missing caller input."""

    status_code = 400
    code = "invalid_request"


class NotConfiguredError(DriveBridgeError):
    """Raised when OAuth client credentials are not configured."""

    status_code = 400
    code = "missing_credentials"

    def __init__(self, message: str = "Google OAuth credentials not configured"):
        super().__init__(message)


class Unauthenticated(DriveBridgeError):
    """Raised when no usable access token exists and refresh is not possible."""

    status_code = 401
    code = "no_access_token"

    def __init__(self, message: str = "Not authenticated with Google Drive"):
        super().__init__(message)


class PayloadTooLarge(DriveBridgeError):
    """Raised when an upload exceeds the size limit."""

    status_code = 413
    code = "file_too_large"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File size {size} exceeds {limit // (1024 * 1024)}MB limit")


class NotFound(DriveBridgeError):
    """Raised when Drive reports the requested file id as unknown."""

    status_code = 404
    code = "not_found"


class RemoteApiError(DriveBridgeError):
    """Raised for provider-side, network or malformed-response failures."""

    status_code = 500
    code = "api_error"


class AuthError(DriveBridgeError):
    """Raised when the OAuth exchange fails or the user denies consent."""

    status_code = 400
    code = "auth_error"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Authorization failed: {reason}")


class Forbidden(DriveBridgeError):
    """Raised when the caller is not an administrator."""

    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Administrator access required"):
        super().__init__(message)

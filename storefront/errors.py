from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """
    Base for every error the handlers map to an HTTP response.
    `message` is client-visible; `context` only goes to the logs.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidRequest(StorefrontError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Not found"


class ConfigurationError(StorefrontError):
    # server misconfiguration, surfaced as 400 so the caller stops retrying blindly
    status_code = 400
    default_message = "Webhook configuration error"


class InvalidSignature(StorefrontError):
    status_code = 400
    default_message = "Invalid signature"


class Unauthorized(StorefrontError):
    status_code = 401
    default_message = "User not authenticated"


class StorageError(StorefrontError):
    status_code = 500
    default_message = "Storage error"


class InternalError(StorefrontError):
    status_code = 500
    default_message = "Internal server error"

"""Error taxonomy for the Gymna backend. Every error carries a user-facing message and an HTTP status."""


class GymnaError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Unauthorized(GymnaError):
    status_code = 401
    default_message = "Unauthorized"


class InsufficientCredits(GymnaError):
    status_code = 402
    default_message = "Insufficient credits"


class ChatNotFound(GymnaError):
    status_code = 404
    default_message = "Chat not found"


class InvalidPlanRequest(GymnaError):
    status_code = 400
    default_message = "Invalid plan request"


class ServiceConfigurationError(GymnaError):
    status_code = 503
    default_message = "Service configuration error"


class PersistenceFailed(GymnaError):
    status_code = 500
    default_message = "Failed to save data"


class GenerationFailed(GymnaError):
    """The model call (or the writes around it) failed after a credit was debited."""

    status_code = 502

    def __init__(self, reason, refunded=True):
        self.reason = reason or "Unknown error"
        self.refunded = refunded
        suffix = "Credits refunded." if refunded else "Credit refund failed, please contact support."
        super().__init__(f"Failed to generate response: {self.reason}. {suffix}")

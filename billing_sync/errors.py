"""Error taxonomy shared by the callable handlers, services and the webhook path.

Callable errors mirror the Firebase callable protocol status codes so clients can
switch on ``error.status``.
"""


class BillingError(Exception):
    """Base class for errors that are reported to the calling client."""

    status = "INTERNAL"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": {"status": self.status, "message": self.message}}


class UnauthenticatedError(BillingError):
    """No caller identity; rejected before any I/O."""

    status = "UNAUTHENTICATED"
    http_status = 401


class InvalidArgumentError(BillingError):
    """Malformed input shape; rejected before any I/O."""

    status = "INVALID_ARGUMENT"
    http_status = 400


class FailedPreconditionError(BillingError):
    """Stored state does not allow the operation (no record, no customer id)."""

    status = "FAILED_PRECONDITION"
    http_status = 400


class PermissionDeniedError(BillingError):
    """Caller does not own the referenced resource."""

    status = "PERMISSION_DENIED"
    http_status = 403


class InternalError(BillingError):
    """Gateway or store failure. The message never carries gateway detail."""

    status = "INTERNAL"
    http_status = 500


class GatewayError(Exception):
    """Raised when a call to the billing gateway fails."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class WebhookSignatureError(Exception):
    """Raised when a webhook body cannot be authenticated."""

    pass


class WebhookConfigurationError(Exception):
    """Raised when the webhook signing secret is not configured."""

    pass

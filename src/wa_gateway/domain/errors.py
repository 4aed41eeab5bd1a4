"""Error taxonomy for gateway operations."""


class GatewayError(Exception):
    """Base class for failures surfaced to API callers."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(GatewayError):
    """A client with the same id is already registered."""


class NotFoundError(GatewayError):
    """Unknown client, chat or message id."""


class NotReadyError(GatewayError):
    """The client has not finished QR authentication."""


class InvalidInputError(GatewayError):
    """Empty or undecodable media payload."""


class ConversionError(GatewayError):
    """The transcoding engine failed or produced nothing."""


class EngineError(GatewayError):
    """Opaque failure reported by the automation engine."""


class DeliveryFailure(GatewayError):
    """Webhook delivery gave up after exhausting its attempts."""

    def __init__(self, url: str, attempts: int, reason: str) -> None:
        super().__init__(f"Webhook delivery to {url} failed after {attempts} attempts: {reason}")
        self.url = url
        self.attempts = attempts
        self.reason = reason

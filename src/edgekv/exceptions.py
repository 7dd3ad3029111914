"""edgekv exceptions."""


class EdgeKVError(Exception):
    """Base exception for edgekv."""

    pass


class ConfigError(EdgeKVError):
    """Configuration error."""

    pass


class FieldError(EdgeKVError):
    """A required input field is missing or empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"problem with field '{field}': missing required field")


class TransportError(EdgeKVError):
    """The service could not be reached."""

    pass


class ServiceError(EdgeKVError):
    """The service answered with a non-success status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        detail: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.detail = detail
        text = f"{status_code} - {message}"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class NotFoundError(ServiceError):
    """Store or key not found."""

    pass


class DecodeError(EdgeKVError):
    """Response body does not have the expected shape."""

    pass


class CassetteError(EdgeKVError):
    """Recorded interaction missing or unusable."""

    pass

"""Error kinds raised while preparing and running a batch."""


class BatchError(Exception):
    """Base class for every error raised by the pipeline."""


class ValidationError(BatchError):
    """A batch precondition was violated; the run never starts."""


class OversizedFileError(BatchError):
    """A candidate file exceeds the configured size policy."""

    def __init__(self, name: str, size: int, max_bytes: int) -> None:
        super().__init__(f"{name} is {size} bytes, limit is {max_bytes} bytes")
        self.name = name
        self.size = size
        self.max_bytes = max_bytes


class EncodingError(BatchError):
    """The image bytes could not be read for encoding."""


class RemoteServiceError(BatchError):
    """The vision service rejected the request (HTTP, auth or quota failure)."""


class UnexpectedClientError(BatchError):
    """Any other failure while talking to the vision service."""

class UploadError(Exception):
    """Base class for errors raised while preparing or running uploads."""


class ConfigError(UploadError):
    """The run cannot start: missing host, bad option values, no input paths."""


class InvalidHeaderError(UploadError):
    """A header name or value cannot be sent on the wire."""


class TransferError(UploadError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text
        message = f"Request failed with status: {status_code}"
        if text:
            message += f" ({text.strip()})"
        super().__init__(message)

"""Errors raised by the generative operations and surfaced by the dispatcher."""


class ExplorerError(Exception):
    """Base class for errors the console reports as a single error entry."""


class ConfigurationError(ExplorerError):
    """Raised when a required setting such as the API key is missing."""


class UsageError(ExplorerError):
    """Raised when a command is missing a required argument."""


class GenerationFailedError(ExplorerError):
    """Raised when a generation call succeeds but returns no payload."""


class InvalidApiKeyError(ExplorerError):
    """Raised when the video service rejects the selected API key."""


class GeolocationError(ExplorerError):
    """Raised when the current location cannot be determined."""


class VideoTimeoutError(ExplorerError):
    """Raised when a video operation is still running after the poll limit."""


class UploadError(ExplorerError):
    """Raised when a selected file cannot be used as an image."""

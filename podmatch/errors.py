"""Error taxonomy. Each error carries the HTTP status the API layer returns for it."""


class PodmatchError(Exception):
    """Base class for all errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message='Internal error', status_code=None):
        if status_code is not None:
            self.status_code = status_code
        self.message = message
        super().__init__(message)


class ConfigurationError(PodmatchError):
    """A required environment variable is not set."""
    status_code = 500


class ValidationError(PodmatchError):
    """Request body is missing a field or has the wrong shape."""
    status_code = 400


class NotFoundError(PodmatchError):
    """A referenced prospect, client or dashboard does not exist."""
    status_code = 404


class UpstreamError(PodmatchError):
    """A third-party API returned an error or unusable payload."""
    status_code = 500


class ResponseShapeError(UpstreamError):
    """A third-party payload failed validation at the parse boundary."""

    def __init__(self, message='Unexpected response shape'):
        super().__init__(message)


class EmbeddingError(UpstreamError):
    def __init__(self, message='Failed to generate embedding'):
        super().__init__(message)


class SheetsError(UpstreamError):
    pass


class PodscanError(UpstreamError):
    pass


class SheetAccessError(SheetsError):
    """One spreadsheet is missing or not shared with the service account."""

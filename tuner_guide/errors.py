"""
Guide error types

Failures raised by the data source and recorded by the refresh engine.
"""


class GuideError(Exception):
    """Base class for all guide errors"""
    pass


class ConfigurationError(GuideError):
    """Raised when no valid tuner server address is configured"""

    def __init__(self, message: str = "Set a valid Mirakurun server URL in settings."):
        super().__init__(message)


class FetchError(GuideError):
    """Raised when a request to the tuner server fails or cannot be decoded"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

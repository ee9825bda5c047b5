"""Exception hierarchy for the GitHub productivity metrics tool.

``main.orchestrate_metrics_generation`` maps each subclass to its own exit code.
"""

from typing import Optional


class ProductivityMetricsError(Exception):
    """Base class for errors that abort a metrics run with a known exit code."""


class ConfigurationError(ProductivityMetricsError):
    """Raised for a malformed ``owner/repo`` slug, bad dates, or a non-positive worker count."""


class AuthenticationError(ProductivityMetricsError):
    """Raised when ``GITHUB_TOKEN`` is missing or GitHub answers HTTP 401."""


class ApiError(ProductivityMetricsError):
    """Raised when a REST or GraphQL call fails after retries or returns an unusable body.

    ``status_code`` carries the HTTP status when GitHub answered with one, so
    callers can tell a missing resource (404/410) from a transport failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DataValidationError(ProductivityMetricsError):
    """Raised when a pull request or issue payload has no ``number``."""

"""Exceptions raised by the load test suite."""


class Error(Exception):
    """Base class for exceptions raised by this package."""

    pass


class ConfigurationError(Error):
    """Raised when the run configuration cannot be used (empty base URL, bad duration)."""

    pass


class HealthCheckError(Error):
    """Raised when the target API fails the pre-run health check."""

    pass


class AuthenticationError(Error):
    """Raised when no authentication method could be set up."""

    pass

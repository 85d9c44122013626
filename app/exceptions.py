"""Error types raised by the dashboard service."""


class DashboardError(Exception):
    """Base class for dashboard errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(DashboardError):
    """Required configuration is missing. Fatal at startup."""


class ValidationError(DashboardError):
    """User input was rejected before reaching the store."""


class StoreError(DashboardError):
    """A read or write against the patient store failed."""

"""Domain exceptions raised by the data layer and translated by the routes."""


class DashboardError(Exception):
    """Base class for all expected application errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DashboardError):
    status_code = 404


class ValidationError(DashboardError):
    status_code = 400


class SyncError(DashboardError):
    """Spreadsheet could not be fetched or reconciled."""

    status_code = 502


class RestoreError(DashboardError):
    status_code = 409


class AuthLockedError(DashboardError):
    """Too many failed PIN attempts for a role."""

    status_code = 423

    def __init__(self, message: str, locked_until=None):
        super().__init__(message)
        self.locked_until = locked_until


class AuthFailedError(DashboardError):
    status_code = 401

"""
League engine exceptions.

Engines raise these; the HTTP layer turns every one of them into the
``{"success": false, "error": ...}`` envelope with ``status_code``.
"""
from typing import Optional


class LeagueError(Exception):
    """Base class for league engine failures."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequestError(LeagueError):
    """Request rejected before any data is fetched."""

    status_code = 400


class NotFoundError(LeagueError):
    status_code = 404


class ConflictError(LeagueError):
    """The requested write would duplicate existing data."""

    status_code = 409


class DataFetchError(LeagueError):
    """A critical read against the store failed."""

    status_code = 500


class PersistenceError(LeagueError):
    """A write failed; the session has been rolled back."""

    status_code = 500

"""
Error taxonomy for the workflows.

Services raise these; ``main.py`` renders them as ``{"message": ...}`` with
the matching HTTP status.
"""

import logging
from contextlib import contextmanager

from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(AppError):
    """Malformed, missing or illegal input."""

    status_code = 400


class NotFound(AppError):
    """Referenced entity is absent or not owned by the caller."""

    status_code = 404


class Conflict(AppError):
    """Uniqueness or duplicate-state violation."""

    status_code = 400


class ServerError(AppError):
    status_code = 500


@contextmanager
def workflow_boundary(action: str):
    """
    Convert anything that is not an AppError or HTTPException into a ServerError.

    The underlying cause is logged with its traceback; the client only sees
    "Server error while <action>".
    """
    try:
        yield
    except (AppError, HTTPException):
        raise
    except Exception as exc:
        logger.exception("Error %s", action)
        raise ServerError(f"Server error while {action}") from exc

# taskup/errors.py

from typing import Optional


class TaskUpError(Exception):
    """Base error for service-layer failures.

    Routers let these propagate; the handlers registered in ``main.py``
    turn them into ``{"error": message}`` responses.
    """

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(TaskUpError):
    status_code = 401


class NotFoundError(TaskUpError):
    status_code = 404


class InvalidRequestError(TaskUpError):
    status_code = 400


class ConflictError(TaskUpError):
    status_code = 409


class ForbiddenError(TaskUpError):
    status_code = 403

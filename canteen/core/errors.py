"""
Canteen Service — Domain error taxonomy

Services raise these; the application-level handler in ``canteen.main`` turns
them into ``{"detail": ...}`` JSON responses with the mapped status code.
"""
from fastapi import status


class CanteenError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(CanteenError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required."


class Forbidden(CanteenError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied."


class NotFound(CanteenError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class ValidationError(CanteenError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input."


class CanteenNotAssigned(ValidationError):
    default_message = "Staff not assigned to a canteen."


class InvalidTransition(CanteenError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from '{current}' to '{target}'.")


class InvalidState(CanteenError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed in the current state."


class Conflict(CanteenError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting update."

from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFound(ServiceError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ValidationError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class Forbidden(ServiceError):
    def __init__(self, message: str = "Forbidden: You do not have permission to perform this action") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidStateTransition(ServiceError):
    """Action attempted against a record not in the required state. Carries the current status."""

    def __init__(self, current_status: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Request is already {current_status}", status.HTTP_400_BAD_REQUEST)
        self.current_status = current_status


class AlreadyApproved(InvalidStateTransition):
    def __init__(self, current_status: str) -> None:
        super().__init__(current_status, "You have already approved this step.")


class ConflictError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)

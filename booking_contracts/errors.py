"""Typed workflow errors.

Each error is an ``HTTPException`` so the service layer can raise it directly
and FastAPI renders it with the matching status code.
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Contract, booking, user or edit request does not exist."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class StateConflictError(HTTPException):
    """Action is not valid for the contract's current status or stage."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class DeadlinePassedError(StateConflictError):
    def __init__(self, detail: str = "Contract deadline has passed"):
        super().__init__(detail)


class AuthorizationError(HTTPException):
    """Actor is not a party to the booking, or may not perform this action."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationFailedError(HTTPException):
    """Proposed changes broke one or more business rules; carries every violation."""

    def __init__(self, errors: list[str], message: str = "Invalid changes"):
        self.errors = list(errors)
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": message, "errors": self.errors},
        )

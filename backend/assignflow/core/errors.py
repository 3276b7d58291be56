# core/errors.py
"""
Primary-path failures. Each one aborts the request and is rendered by the
handler in main.py as {"message": ...}.
"""
from fastapi import HTTPException, status


class ValidationFailed(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class NotAuthorized(HTTPException):
    def __init__(self, message: str = "Not authorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


class Forbidden(HTTPException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class NotFound(HTTPException):
    def __init__(self, what: str = "Resource"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


class InvalidTransition(HTTPException):
    """Raised when an assignment is asked to move along an edge that does not exist."""

    def __init__(self, current: str, attempted: str, message: str = None):
        self.current = current
        self.attempted = attempted
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message or f"Cannot move assignment from '{current}' to '{attempted}'",
        )


class GatewayNotConfigured(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment gateway not configured. Please contact administrator.",
        )

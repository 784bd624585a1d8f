from typing import Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = errors

    @property
    def detail(self):
        """HTTPException detail: the message, or message plus field errors when present."""
        if self.errors:
            return {"message": self.message, "errors": self.errors}
        return self.message


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class BusinessRuleError(ServiceError):
    """Well-formed request rejected by a domain rule (duplicates, blocked deletes, overpayment)."""

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None) -> None:
        super().__init__(message, 422, errors)

"""
Error types raised by the CheckOps services.

Every error carries a machine readable ``code`` and the HTTP status the API
layer renders it with.
"""
from typing import Any, List, Optional


class CheckOpsError(Exception):
    code = "CHECKOPS_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"message": self.message, "type": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(CheckOpsError):
    """Malformed input. ``details`` lists every independent failure found."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message, details)

    @classmethod
    def collect(cls, message: str, errors: List[str]) -> None:
        """Raise with all collected errors, if there are any."""
        if errors:
            raise cls(message, list(errors))


class NotFoundError(CheckOpsError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, id: Any):
        super().__init__(f"{resource} with id '{id}' not found")
        self.resource = resource
        self.id = id


class InvalidOperationError(CheckOpsError):
    code = "INVALID_OPERATION"
    status_code = 409

"""CheckOps: forms with stable option keys, submissions and answer statistics."""
from checkops.core.errors import CheckOpsError, InvalidOperationError, NotFoundError, ValidationError
from checkops.sdk import CheckOps

__version__ = "1.0.0"

__all__ = ["CheckOps", "CheckOpsError", "InvalidOperationError", "NotFoundError", "ValidationError"]

"""
Core package initializer.

Key namespace rules, the error taxonomy and the batch operation tracker.
`imagehost.core.context` is imported directly to keep this package free of
storage imports.
"""

from .exceptions import (
    ImageHostError,
    InvalidKeyError,
    ObjectNotFoundError,
    TargetExistsError,
    VersionConflictError,
    StoreUnavailableError,
)
from .operation import OperationTracker, generate_operation_id

__all__ = [
    "ImageHostError",
    "InvalidKeyError",
    "ObjectNotFoundError",
    "TargetExistsError",
    "VersionConflictError",
    "StoreUnavailableError",
    "OperationTracker",
    "generate_operation_id",
]

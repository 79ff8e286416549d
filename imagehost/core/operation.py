"""Batch operation tracking with per-item outcomes."""
import secrets
import time
from typing import Any, Optional

from imagehost.schemas.operation import ItemResult, ItemStatus, OperationResult

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_operation_id() -> str:
    """Unique operation id: op_<base36 ms timestamp>_<random>."""
    return f"op_{_base36(int(time.time() * 1000))}_{secrets.token_hex(3)}"


class OperationTracker:
    """
    Collects the outcome of every item in a multi-item request.

    One add_* call per processed item; get_result() produces the summary
    returned to the client. Keys whose failure was marked retryable are
    listed separately so a client can resubmit only those.
    """

    def __init__(self, operation_id: Optional[str] = None):
        self.id = operation_id or generate_operation_id()
        self._started = time.monotonic()
        self._details: list[ItemResult] = []
        # dict keeps insertion order, used as an ordered set
        self._retryable: dict[str, None] = {}

    def add_success(self, key: str, data: Optional[dict[str, Any]] = None) -> None:
        self._details.append(ItemResult(key=key, status=ItemStatus.success, data=data))

    def add_failed(self, key: str, error: str, retryable: bool = True) -> None:
        self._details.append(ItemResult(key=key, status=ItemStatus.failed, error=error))
        if retryable:
            self._retryable[key] = None

    def add_skipped(self, key: str, reason: Optional[str] = None) -> None:
        self._details.append(ItemResult(key=key, status=ItemStatus.skipped, error=reason))

    def succeeded_items(self) -> list[ItemResult]:
        return [item for item in self._details if item.status == ItemStatus.success]

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for item in self._details if item.status == status)

    def get_result(self) -> OperationResult:
        failed = self._count(ItemStatus.failed)
        return OperationResult(
            operation_id=self.id,
            ok=failed == 0,
            total=len(self._details),
            succeeded=self._count(ItemStatus.success),
            failed=failed,
            skipped=self._count(ItemStatus.skipped),
            details=[item.model_copy() for item in self._details],
            retryable=list(self._retryable),
            duration_ms=int((time.monotonic() - self._started) * 1000),
        )

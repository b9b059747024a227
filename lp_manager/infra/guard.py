"""
Single mutual-exclusion guard for mutating position operations
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

from ..errors import OperationInProgress

logger = logging.getLogger(__name__)


class OperationGuard:
    """
    Non-blocking lock shared by open, increase, close, rebalance and sweep.

    A second mutating call, whether from another thread or re-entrantly
    from a venue or token callback, is rejected with OperationInProgress
    instead of waiting.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Optional[str] = None

    @property
    def active(self) -> Optional[str]:
        """Name of the operation currently holding the guard"""
        return self._active

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self, operation: str):
        if not self._lock.acquire(blocking=False):
            logger.warning(f"Rejected '{operation}': '{self._active}' in progress")
            raise OperationInProgress.rejected(operation, self._active)
        self._active = operation
        try:
            yield
        finally:
            self._active = None
            self._lock.release()

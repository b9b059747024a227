"""
Operation tracing for log correlation

open/increase/close/rebalance/sweep each run under one operation id.
Venue calls, custody transfers and events logged while it is active
carry that id, so a single grep reconstructs one manager call.
"""

import contextvars
import logging
import uuid
from typing import Optional

_operation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("lp_operation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Id of the operation running in this context, if any"""
    return _operation_id.get()


class CorrelationContext:
    """
    Scope an operation id: "<operation>_<12 hex chars>"

    Nested scopes shadow the outer id and restore it on exit.

    Usage:
        with CorrelationContext("rebalance") as cid:
            ...
    """

    def __init__(self, operation: Optional[str] = None):
        suffix = uuid.uuid4().hex[:12]
        self.correlation_id = f"{operation}_{suffix}" if operation else suffix
        self._reset: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._reset = _operation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._reset is not None:
            _operation_id.reset(self._reset)
            self._reset = None


def log_with_correlation(logger: logging.Logger, level: int, message: str, operation_name: str, **fields):
    """
    Emit "[<id>] [<operation>] message"

    The id, the operation name and any keyword fields (token_id,
    venue, actor) are also attached to the record as attributes.
    """
    cid = get_correlation_id()
    prefix = f"[{cid}] " if cid else ""
    logger.log(
        level,
        f"{prefix}[{operation_name}] {message}",
        extra={"correlation_id": cid, "operation": operation_name, **fields},
    )

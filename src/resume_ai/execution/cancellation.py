import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from resume_ai.observability.structured_log import log_json

logger = logging.getLogger(__name__)

CancelCallback = Callable[[], None]


class CancellationToken:
    """One-shot cancellation signal shared between a caller and an execution."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: List[CancelCallback] = []
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def add_callback(self, callback: CancelCallback) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: CancelCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    async def wait(self) -> None:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()


class OperationTracker:
    """Maps operation ids to their cancellation tokens while in flight."""

    def __init__(self) -> None:
        self._operations: Dict[str, CancellationToken] = {}

    def start(
        self,
        operation_id: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> Tuple[str, CancellationToken]:
        op_id = operation_id or uuid.uuid4().hex
        if op_id in self._operations:
            raise ValueError(f"Operation {op_id!r} is already running")
        op_token = token or CancellationToken()
        self._operations[op_id] = op_token
        return op_id, op_token

    def cancel(self, operation_id: str) -> bool:
        token = self._operations.get(operation_id)
        if token is None:
            return False
        token.cancel()
        log_json(logger, "operation.cancel", operation_id=operation_id)
        return True

    def finish(self, operation_id: str) -> None:
        self._operations.pop(operation_id, None)

    def active_ids(self) -> List[str]:
        return list(self._operations.keys())

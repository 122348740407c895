from __future__ import annotations

import asyncio
import logging
from dataclasses import fields, replace
from typing import Any, Awaitable, Callable, Optional

from resume_ai.domain.contracts import (
    CancellationSource,
    ExecutionFailure,
    ExecutionRequest,
    ExecutionResponse,
    ProviderConfig,
    ProviderError,
    ProviderErrorCode,
    ProviderKind,
    ProviderStatus,
)
from resume_ai.observability.structured_log import log_json

logger = logging.getLogger(__name__)

BASE_BACKOFF_MS = 1000
MAX_BACKOFF_MS = 10_000

SleepFn = Callable[[float], Awaitable[Any]]

_CONFIG_FIELDS = frozenset(f.name for f in fields(ProviderConfig))


def backoff_delay_ms(max_retries: int, remaining: int) -> int:
    """Delay before the retry taken when ``remaining`` retries are left."""
    exponent = max(0, max_retries - remaining)
    return min(BASE_BACKOFF_MS * (2 ** exponent), MAX_BACKOFF_MS)


class BaseProvider:
    """Shared config handling and transport retry for every backend."""

    kind: ProviderKind

    def __init__(self, config: ProviderConfig, sleep: SleepFn = asyncio.sleep):
        self._config = config
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.kind.value

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> ProviderConfig:
        return replace(self._config, extra_options=dict(self._config.extra_options))

    def update_config(self, **changes: Any) -> ProviderConfig:
        unknown = set(changes) - _CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown provider config field(s): {sorted(unknown)}")
        self._config = replace(self._config, **changes)
        log_json(
            logger,
            "provider.config.update",
            provider=self.name,
            fields=sorted(k for k in changes if k != "api_key"),
        )
        return self.get_config()

    # ------------------------------------------------------------------
    # Backend contract
    # ------------------------------------------------------------------

    async def execute(
        self,
        request: ExecutionRequest,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        raise NotImplementedError

    async def get_status(self) -> ProviderStatus:
        raise NotImplementedError

    async def is_available(self) -> bool:
        status = await self.get_status()
        return status.available

    # ------------------------------------------------------------------
    # Transport retry
    # ------------------------------------------------------------------

    async def execute_with_retry(
        self,
        request: ExecutionRequest,
        retries: Optional[int] = None,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        """Execute, retrying only TIMEOUT and PROCESS_KILLED failures.

        ``retries`` defaults to the configured ``max_transport_retries``.  The
        wait before each retry doubles from 1s and is capped at 10s.
        """
        max_retries = self._config.max_transport_retries
        remaining = max_retries if retries is None else max(0, retries)
        response = await self._execute_guarded(request, cancel_token)
        while isinstance(response, ExecutionFailure) and response.error.retryable and remaining > 0:
            delay_ms = backoff_delay_ms(max_retries, remaining)
            log_json(
                logger,
                "provider.retry.scheduled",
                provider=self.name,
                code=response.error.code.value,
                delay_ms=delay_ms,
                remaining=remaining,
            )
            if not await self._backoff(delay_ms / 1000.0, cancel_token):
                return self._failure(ProviderErrorCode.CANCELLED, "Execution cancelled during retry backoff.")
            remaining -= 1
            response = await self._execute_guarded(request, cancel_token)
        return response

    async def _execute_guarded(
        self,
        request: ExecutionRequest,
        cancel_token: Optional[CancellationSource],
    ) -> ExecutionResponse:
        try:
            return await self.execute(request, cancel_token=cancel_token)
        except Exception as exc:
            logger.exception("Unexpected %s provider failure: %s", self.name, exc)
            return self._failure(ProviderErrorCode.UNKNOWN, f"Unexpected {self.name} failure: {exc}")

    async def _backoff(self, delay_sec: float, cancel_token: Optional[CancellationSource]) -> bool:
        """Sleep for ``delay_sec``; returns False if cancelled meanwhile."""
        if cancel_token is None:
            await self._sleep(delay_sec)
            return True
        if cancel_token.cancelled:
            return False
        outcome = await wait_unless_cancelled(self._sleep(delay_sec), cancel_token)
        return outcome is not CANCELLED

    def _failure(self, code: ProviderErrorCode, message: str, **details: Any) -> ExecutionFailure:
        return ExecutionFailure(
            error=ProviderError(code=code, message=message, provider=self.name, details=details)
        )

    def _status(self, available: bool, version: Optional[str] = None, error: Optional[str] = None) -> ProviderStatus:
        return ProviderStatus(provider=self.kind, available=available, version=version, error=error)


CANCELLED = object()


async def wait_unless_cancelled(awaitable: Awaitable[Any], cancel_token: CancellationSource) -> Any:
    """Await ``awaitable`` unless ``cancel_token`` fires first.

    Returns the awaitable's result, or :data:`CANCELLED` after cancelling it.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(awaitable)
    fired = loop.create_future()

    def _on_cancel() -> None:
        if not fired.done():
            fired.set_result(None)

    cancel_token.add_callback(_on_cancel)
    try:
        await asyncio.wait({task, fired}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        cancel_token.remove_callback(_on_cancel)
        if not fired.done():
            fired.cancel()
    if cancel_token.cancelled:
        if not task.done():
            task.cancel()
        return CANCELLED
    return task.result()

"""Provider registry for runtime backend selection.

The ProviderRegistry holds one provider instance per ``ProviderKind`` and
tracks which one is active.  Callers resolve ``active()`` once per operation,
so switching never affects executions that are already in flight.

Features:
  - Register / unregister providers by kind
  - Switch the active provider at runtime (single-assignment swap)
  - Check every provider concurrently, each check bounded by its own timeout
  - Resolve the first available provider, preferring the active one

Usage::

    registry = ProviderRegistry()
    registry.register(claude_provider, make_active=True)
    registry.register(gemini_provider)
    statuses = await registry.check_all_availability()
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from resume_ai.domain.contracts import AIProvider, ProviderConfig, ProviderKind, ProviderStatus
from resume_ai.observability.structured_log import log_json

logger = logging.getLogger(__name__)

DEFAULT_CHECK_TIMEOUT_SEC = 10.0
_SWITCH_HISTORY_LIMIT = 100


class ProviderNotFoundError(KeyError):
    pass


class ProviderRegistry:
    """Runtime provider registry with hot-switch support."""

    def __init__(self, check_timeout_sec: float = DEFAULT_CHECK_TIMEOUT_SEC) -> None:
        self._providers: Dict[ProviderKind, AIProvider] = {}
        self._active: Optional[Tuple[ProviderKind, AIProvider]] = None
        self._check_timeout_sec = check_timeout_sec
        self._switch_history: List[Dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Registry management
    # ------------------------------------------------------------------

    def register(self, provider: AIProvider, make_active: bool = False) -> None:
        kind = provider.kind
        self._providers[kind] = provider
        if make_active or self._active is None or self._active[0] == kind:
            self._active = (kind, provider)
        log_json(logger, "provider_registry.register", provider=kind.value, make_active=make_active)

    def unregister(self, kind: ProviderKind) -> None:
        if kind not in self._providers:
            return
        del self._providers[kind]
        log_json(logger, "provider_registry.unregister", provider=kind.value)
        if self._active is not None and self._active[0] == kind:
            self._active = next(iter(self._providers.items()), None)

    def switch(self, kind: ProviderKind) -> AIProvider:
        """Make ``kind`` the active provider and return it."""
        provider = self.get_provider(kind)
        previous = self._active[0].value if self._active else ""
        self._active = (kind, provider)
        self._switch_history.append({
            "from": previous,
            "to": kind.value,
            "at": datetime.now(timezone.utc).isoformat(),
        })
        if len(self._switch_history) > _SWITCH_HISTORY_LIMIT:
            self._switch_history = self._switch_history[-_SWITCH_HISTORY_LIMIT:]
        log_json(logger, "provider_registry.switch", from_provider=previous, to=kind.value)
        return provider

    def get_provider(self, kind: ProviderKind) -> AIProvider:
        provider = self._providers.get(kind)
        if provider is None:
            available = [k.value for k in self._providers]
            raise ProviderNotFoundError(f"Provider '{kind.value}' not registered. Available: {available}")
        return provider

    def kinds(self) -> List[ProviderKind]:
        return list(self._providers.keys())

    def active_kind(self) -> Optional[ProviderKind]:
        active = self._active
        return active[0] if active else None

    def active(self) -> AIProvider:
        active = self._active
        if active is None:
            raise ProviderNotFoundError("No providers registered.")
        return active[1]

    def update_provider_config(self, kind: ProviderKind, **changes: Any) -> ProviderConfig:
        return self.get_provider(kind).update_config(**changes)

    @property
    def switch_history(self) -> List[Dict[str, Any]]:
        return list(self._switch_history)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def get_status(self, kind: ProviderKind) -> ProviderStatus:
        return await self._check(kind, self.get_provider(kind))

    async def check_all_availability(self) -> Dict[ProviderKind, ProviderStatus]:
        items = list(self._providers.items())
        statuses = await asyncio.gather(*(self._check(kind, provider) for kind, provider in items))
        return {kind: status for (kind, _), status in zip(items, statuses)}

    async def get_first_available(self) -> Optional[AIProvider]:
        """Active provider if it is available, else the first available one."""
        ordered = list(self._providers.items())
        active_kind = self.active_kind()
        ordered.sort(key=lambda item: item[0] != active_kind)
        for kind, provider in ordered:
            status = await self._check(kind, provider)
            if status.available:
                return provider
        return None

    async def _check(self, kind: ProviderKind, provider: AIProvider) -> ProviderStatus:
        try:
            status = await asyncio.wait_for(provider.get_status(), timeout=self._check_timeout_sec)
        except asyncio.TimeoutError:
            status = ProviderStatus(provider=kind, available=False, error="availability check timed out")
        except Exception as exc:
            logger.exception("Availability check for %s failed: %s", kind.value, exc)
            status = ProviderStatus(provider=kind, available=False, error=str(exc))
        log_json(logger, "provider_registry.check", provider=kind.value, available=status.available)
        return status

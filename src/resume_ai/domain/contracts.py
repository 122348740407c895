from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Literal, Optional, Protocol, Union

OutputFormat = Literal["text", "json"]


class ProviderKind(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    OPENAI = "openai"

    @classmethod
    def parse(cls, value: str) -> "ProviderKind":
        normalized = (value or "").strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise ValueError(f"Unknown provider kind: {value!r}")


class ProviderErrorCode(str, Enum):
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    PROCESS_KILLED = "PROCESS_KILLED"
    NONZERO_EXIT = "NONZERO_EXIT"
    INVALID_JSON = "INVALID_JSON"
    AUTH_FAILED = "AUTH_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


TRANSIENT_ERROR_CODES = frozenset({ProviderErrorCode.TIMEOUT, ProviderErrorCode.PROCESS_KILLED})


@dataclass(frozen=True)
class ProviderError:
    code: ProviderErrorCode
    message: str
    provider: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return self.code in TRANSIENT_ERROR_CODES


@dataclass(frozen=True)
class ExecutionRequest:
    prompt: str
    output_format: OutputFormat = "text"
    system_prompt: str = ""
    # Overrides ProviderConfig.timeout_ms for this request only.
    timeout_ms: Optional[int] = None

    def __post_init__(self) -> None:
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")

    def effective_timeout_ms(self, config: "ProviderConfig") -> int:
        return self.timeout_ms if self.timeout_ms is not None else config.timeout_ms


@dataclass(frozen=True)
class ExecutionSuccess:
    raw_response: str
    data: Any = None
    ok: Literal[True] = True


@dataclass(frozen=True)
class ExecutionFailure:
    error: ProviderError
    ok: Literal[False] = False


ExecutionResponse = Union[ExecutionSuccess, ExecutionFailure]


@dataclass
class ProviderConfig:
    """Per-instance backend settings.

    ``executable`` is a CLI path for process-backed providers and a base URL
    for API-backed ones.
    """

    executable: str
    timeout_ms: int = 120_000
    max_transport_retries: int = 0
    model: Optional[str] = None
    api_key: Optional[str] = None
    extra_options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.max_transport_retries < 0:
            raise ValueError(
                f"max_transport_retries must be >= 0, got {self.max_transport_retries}"
            )


@dataclass(frozen=True)
class ProviderStatus:
    provider: ProviderKind
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "available": self.available,
            "version": self.version,
            "error": self.error,
        }


@dataclass(frozen=True)
class CommandResult:
    returncode: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False
    signal_name: Optional[str] = None


class CancellationSource(Protocol):
    @property
    def cancelled(self) -> bool:
        ...

    def add_callback(self, callback: Any) -> None:
        ...

    def remove_callback(self, callback: Any) -> None:
        ...


class AIProvider(Protocol):
    kind: ProviderKind

    async def execute(
        self,
        request: ExecutionRequest,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        ...

    async def execute_with_retry(
        self,
        request: ExecutionRequest,
        retries: Optional[int] = None,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        ...

    async def is_available(self) -> bool:
        ...

    async def get_status(self) -> ProviderStatus:
        ...

    def get_config(self) -> ProviderConfig:
        ...

    def update_config(self, **changes: Any) -> ProviderConfig:
        ...

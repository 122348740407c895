"""Orchestrator-level outcomes.

AI operations return ``Ok`` or ``Err`` rather than raising, so callers can
branch on ``result.ok`` and read ``error.code`` without exception handling.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Literal, TypeVar, Union

from resume_ai.domain.contracts import ProviderError, ProviderErrorCode

T = TypeVar("T")


class ProcessorErrorCode(str, Enum):
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    PARSE_FAILED = "PARSE_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CANCELLED = "CANCELLED"
    INVALID_INPUT = "INVALID_INPUT"
    UNKNOWN = "UNKNOWN"


_PROVIDER_TO_PROCESSOR = {
    ProviderErrorCode.PROVIDER_NOT_FOUND: ProcessorErrorCode.PROVIDER_UNAVAILABLE,
    ProviderErrorCode.TIMEOUT: ProcessorErrorCode.TIMEOUT,
    ProviderErrorCode.INVALID_JSON: ProcessorErrorCode.PARSE_FAILED,
    ProviderErrorCode.CANCELLED: ProcessorErrorCode.CANCELLED,
    ProviderErrorCode.UNKNOWN: ProcessorErrorCode.UNKNOWN,
}


@dataclass(frozen=True)
class ProcessorError:
    code: ProcessorErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_provider_error(cls, error: ProviderError) -> "ProcessorError":
        code = _PROVIDER_TO_PROCESSOR.get(error.code, ProcessorErrorCode.EXECUTION_FAILED)
        details = dict(error.details)
        details["provider"] = error.provider
        details["provider_code"] = error.code.value
        return cls(code=code, message=error.message, details=details)


class ProcessorFailure(Exception):
    def __init__(self, error: ProcessorError):
        super().__init__(f"{error.code.value}: {error.message}")
        self.error = error


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    metadata: Dict[str, Any] = field(default_factory=dict)
    ok: Literal[True] = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ProcessorError
    ok: Literal[False] = False

    def unwrap(self) -> Any:
        raise ProcessorFailure(self.error)


Result = Union[Ok[T], Err]

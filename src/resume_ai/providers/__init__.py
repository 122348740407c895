from resume_ai.providers.api_provider import OpenAIApiProvider
from resume_ai.providers.base import BaseProvider, backoff_delay_ms
from resume_ai.providers.cli_provider import (
    ClaudeCliProvider,
    CliProvider,
    CodexCliProvider,
    GeminiCliProvider,
)
from resume_ai.providers.registry import ProviderNotFoundError, ProviderRegistry
from resume_ai.providers.response_unwrap import ResponseParseError, unwrap

__all__ = [
    "BaseProvider",
    "ClaudeCliProvider",
    "CliProvider",
    "CodexCliProvider",
    "GeminiCliProvider",
    "OpenAIApiProvider",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "ResponseParseError",
    "backoff_delay_ms",
    "unwrap",
]

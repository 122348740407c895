import logging
from dataclasses import replace
from typing import Optional

from resume_ai.config import Settings
from resume_ai.domain.contracts import ProviderKind
from resume_ai.events.progress import ProgressBus
from resume_ai.execution.cancellation import OperationTracker
from resume_ai.execution.process_runner import ProcessRunner
from resume_ai.providers.api_provider import OpenAIApiProvider
from resume_ai.providers.base import BaseProvider
from resume_ai.providers.cli_provider import ClaudeCliProvider, CodexCliProvider, GeminiCliProvider
from resume_ai.providers.registry import ProviderRegistry
from resume_ai.providers.shell_env import resolve_executable
from resume_ai.services.ai_processor import AIProcessor, AIProcessorConfig

logger = logging.getLogger(__name__)

_CLI_PROVIDERS = {
    ProviderKind.CLAUDE: ClaudeCliProvider,
    ProviderKind.CODEX: CodexCliProvider,
    ProviderKind.GEMINI: GeminiCliProvider,
}


def build_provider(kind: ProviderKind, settings: Settings, runner: Optional[ProcessRunner] = None) -> BaseProvider:
    config = settings.provider_config(kind)
    if kind is ProviderKind.OPENAI:
        return OpenAIApiProvider(config)
    if not settings.explicit_paths.get(kind):
        config = replace(config, executable=resolve_executable(config.executable))
    return _CLI_PROVIDERS[kind](
        config,
        runner=runner,
        version_timeout_sec=float(settings.check_timeout_sec),
    )


def build_provider_registry(settings: Settings, runner: Optional[ProcessRunner] = None) -> ProviderRegistry:
    registry = ProviderRegistry(check_timeout_sec=float(settings.check_timeout_sec))
    shared_runner = runner or ProcessRunner()
    for kind in ProviderKind:
        registry.register(build_provider(kind, settings, shared_runner))
    registry.switch(settings.active_provider)
    return registry


def build_ai_processor(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    progress: Optional[ProgressBus] = None,
) -> AIProcessor:
    resolved = settings or Settings.from_env()
    processor_config = AIProcessorConfig(
        enable_retry_on_validation_failure=resolved.enable_validation_retry,
        max_validation_retries=resolved.max_validation_retries,
        sanitize_output=resolved.sanitize_output,
        include_metadata=resolved.include_metadata,
    )
    return AIProcessor(
        registry=registry or build_provider_registry(resolved),
        config=processor_config,
        progress=progress or ProgressBus(),
        tracker=OperationTracker(),
    )

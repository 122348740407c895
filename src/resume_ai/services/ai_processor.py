"""Turn a prompt into a schema-valid structured result.

``AIProcessor.run`` is the loop every AI feature goes through:

1. check that the active provider is available (never retried);
2. execute the prompt in JSON mode, with transport retries inside the provider;
3. validate the parsed payload against the output schema;
4. on a schema violation, execute again while validation attempts remain.

Transport failures end the loop immediately and do not use up a validation
attempt.  Results come back as ``Ok``/``Err``; nothing is raised for
expected failures.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel

from resume_ai.domain.contracts import ExecutionFailure, ExecutionRequest
from resume_ai.domain.result import Err, Ok, ProcessorError, ProcessorErrorCode, Result
from resume_ai.events.progress import ProgressBus, ProgressStatus
from resume_ai.execution.cancellation import CancellationToken, OperationTracker
from resume_ai.observability.structured_log import log_json
from resume_ai.prompts.prompt_builder import (
    CoverLetterOptions,
    RefinementOptions,
    build_cover_letter_prompt,
    build_job_extraction_prompt,
    build_resume_extraction_prompt,
    build_resume_refinement_prompt,
)
from resume_ai.providers.registry import ProviderRegistry
from resume_ai.schemas.records import ExtractedJobPosting, GeneratedCoverLetter, RefinedResume, Resume
from resume_ai.schemas.validation import OutputSchema, SchemaError, as_schema
from resume_ai.services.sanitizer import sanitize_ai_response

logger = logging.getLogger(__name__)

SchemaLike = Union[OutputSchema[Any], Type[BaseModel]]


@dataclass(frozen=True)
class AIProcessorConfig:
    enable_retry_on_validation_failure: bool = False
    max_validation_retries: int = 1
    sanitize_output: bool = True
    include_metadata: bool = True
    # Append the previous attempt's violations to the prompt on a validation retry.
    amend_prompt_on_retry: bool = False


class AIProcessor:
    def __init__(
        self,
        registry: ProviderRegistry,
        config: Optional[AIProcessorConfig] = None,
        progress: Optional[ProgressBus] = None,
        tracker: Optional[OperationTracker] = None,
    ):
        self._registry = registry
        self._config = config or AIProcessorConfig()
        self._progress = progress or ProgressBus()
        self._tracker = tracker or OperationTracker()

    @property
    def config(self) -> AIProcessorConfig:
        return self._config

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def progress(self) -> ProgressBus:
        return self._progress

    def cancel(self, operation_id: str) -> bool:
        return self._tracker.cancel(operation_id)

    def active_operations(self) -> List[str]:
        return self._tracker.active_ids()

    # ------------------------------------------------------------------
    # Named operations
    # ------------------------------------------------------------------

    async def refine_resume(
        self,
        resume: Resume,
        job_posting: str,
        options: Optional[RefinementOptions] = None,
        **run_kwargs: Any,
    ) -> Result[RefinedResume]:
        opts = options or RefinementOptions(include_metadata=self._config.include_metadata)
        prompt = build_resume_refinement_prompt(resume, job_posting, opts)
        return await self.run(prompt.user, RefinedResume, system_prompt=prompt.system, **run_kwargs)

    async def generate_cover_letter(
        self,
        resume: Resume,
        job_posting: str,
        company_info: Optional[Dict[str, Any]] = None,
        options: Optional[CoverLetterOptions] = None,
        **run_kwargs: Any,
    ) -> Result[GeneratedCoverLetter]:
        opts = options or CoverLetterOptions(include_metadata=self._config.include_metadata)
        prompt = build_cover_letter_prompt(resume, job_posting, company_info, opts)
        return await self.run(prompt.user, GeneratedCoverLetter, system_prompt=prompt.system, **run_kwargs)

    async def extract_resume(self, document_text: str, **run_kwargs: Any) -> Result[Resume]:
        prompt = build_resume_extraction_prompt(document_text)
        return await self.run(prompt.user, Resume, system_prompt=prompt.system, **run_kwargs)

    async def extract_job_posting(self, job_text: str, **run_kwargs: Any) -> Result[ExtractedJobPosting]:
        prompt = build_job_extraction_prompt(job_text)
        return await self.run(prompt.user, ExtractedJobPosting, system_prompt=prompt.system, **run_kwargs)

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    async def run(
        self,
        prompt: str,
        schema: SchemaLike,
        *,
        system_prompt: str = "",
        timeout_ms: Optional[int] = None,
        enable_retry: Optional[bool] = None,
        max_validation_retries: Optional[int] = None,
        operation_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Result[Any]:
        """Execute ``prompt`` until its output validates against ``schema``.

        ``timeout_ms`` overrides the provider timeout for this call only.
        ``enable_retry`` and ``max_validation_retries`` override the processor
        config.  Pass ``operation_id`` to be able to ``cancel()`` the call.
        """
        op_id, token = self._tracker.start(operation_id, cancel_token)
        started = time.monotonic()
        self._emit(op_id, "started", "Starting AI request", 0)
        try:
            result = await self._run_operation(
                op_id,
                token,
                prompt,
                as_schema(schema),
                system_prompt=system_prompt,
                timeout_ms=timeout_ms,
                enable_retry=enable_retry,
                max_validation_retries=max_validation_retries,
            )
        finally:
            self._tracker.finish(op_id)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if isinstance(result, Ok):
            self._emit(op_id, "completed", "Done", 100)
            log_json(logger, "ai_processor.completed", operation_id=op_id, elapsed_ms=elapsed_ms)
            if self._config.include_metadata:
                result = Ok(result.value, metadata=dict(result.metadata, processing_time_ms=elapsed_ms))
            else:
                result = Ok(result.value)
        elif result.error.code == ProcessorErrorCode.CANCELLED:
            self._emit(op_id, "cancelled", result.error.message)
        else:
            self._emit(op_id, "error", result.error.message)
            log_json(
                logger,
                "ai_processor.failed",
                level=logging.WARNING,
                operation_id=op_id,
                code=result.error.code.value,
                elapsed_ms=elapsed_ms,
            )
        return result

    async def _run_operation(
        self,
        op_id: str,
        token: CancellationToken,
        prompt: str,
        schema: OutputSchema[Any],
        *,
        system_prompt: str,
        timeout_ms: Optional[int],
        enable_retry: Optional[bool],
        max_validation_retries: Optional[int],
    ) -> Result[Any]:
        if timeout_ms is not None and timeout_ms <= 0:
            return Err(ProcessorError(
                code=ProcessorErrorCode.INVALID_INPUT,
                message=f"timeout_ms must be positive, got {timeout_ms}",
                details={"timeout_ms": timeout_ms},
            ))
        provider = self._registry.active()
        if not await provider.is_available():
            return Err(ProcessorError(
                code=ProcessorErrorCode.PROVIDER_UNAVAILABLE,
                message=f"{provider.kind.value} is not available. Install or configure it, or switch provider.",
                details={"provider": provider.kind.value},
            ))

        retry = self._config.enable_retry_on_validation_failure if enable_retry is None else enable_retry
        max_retries = (
            self._config.max_validation_retries if max_validation_retries is None else max_validation_retries
        )
        attempts = max(0, max_retries) + 1 if retry else 1
        request = ExecutionRequest(
            prompt=prompt,
            output_format="json",
            system_prompt=system_prompt,
            timeout_ms=timeout_ms,
        )
        violations: List[str] = []
        raw_data: Any = None

        for attempt in range(1, attempts + 1):
            if token.cancelled:
                return _cancelled()
            log_json(
                logger,
                "ai_processor.attempt",
                operation_id=op_id,
                provider=provider.kind.value,
                attempt=attempt,
                attempts=attempts,
                schema=getattr(schema, "name", type(schema).__name__),
            )
            self._emit(op_id, "processing", f"Waiting for {provider.kind.value} ({attempt}/{attempts})", 25)
            response = await provider.execute_with_retry(request, cancel_token=token)
            if token.cancelled:
                return _cancelled()
            if isinstance(response, ExecutionFailure):
                return Err(ProcessorError.from_provider_error(response.error))

            self._emit(op_id, "validating", "Validating response", 75)
            raw_data = response.data
            value, violations = self._validate(schema, raw_data)
            if not violations:
                return Ok(value, metadata={"provider": provider.kind.value, "attempts": attempt})
            log_json(
                logger,
                "ai_processor.validation_failed",
                level=logging.WARNING,
                operation_id=op_id,
                attempt=attempt,
                violations=violations[:10],
            )
            if self._config.amend_prompt_on_retry:
                request = replace(request, prompt=_amend_prompt(prompt, violations))

        return Err(ProcessorError(
            code=ProcessorErrorCode.VALIDATION_FAILED,
            message="Response failed schema validation: " + "; ".join(violations),
            details={"validation_errors": violations, "raw_data": raw_data, "attempts": attempts},
        ))

    def _validate(self, schema: OutputSchema[Any], data: Any) -> Tuple[Any, List[str]]:
        try:
            value = schema.validate(data)
            if not self._config.sanitize_output:
                return value, []
            dump = getattr(schema, "dump", None)
            if dump is None:
                return sanitize_ai_response(value), []
            return schema.validate(sanitize_ai_response(dump(value))), []
        except SchemaError as exc:
            return None, exc.violations

    def _emit(self, op_id: str, status: ProgressStatus, message: str, progress: Optional[int] = None) -> None:
        try:
            self._progress.publish(op_id, status, message, progress)
        except Exception:
            logger.exception("Progress subscriber failed for operation %s", op_id)


def _cancelled() -> Err:
    return Err(ProcessorError(code=ProcessorErrorCode.CANCELLED, message="Operation cancelled."))


def _amend_prompt(prompt: str, violations: List[str]) -> str:
    listed = "\n".join(f"- {v}" for v in violations)
    return (
        f"{prompt}\n\n## Previous attempt was rejected\n\n"
        f"Your previous JSON did not match the schema:\n{listed}\n\n"
        "Return a corrected JSON object only."
    )

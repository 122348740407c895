from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from resume_ai.domain.contracts import (
    CancellationSource,
    CommandResult,
    ExecutionRequest,
    ExecutionResponse,
    ExecutionSuccess,
    ProviderConfig,
    ProviderErrorCode,
    ProviderKind,
    ProviderStatus,
)
from resume_ai.execution.process_runner import ProcessRunner
from resume_ai.observability.structured_log import log_json
from resume_ai.providers.base import BaseProvider, SleepFn
from resume_ai.providers.response_unwrap import ResponseParseError, unwrap, unwrap_inner_text
from resume_ai.providers.shell_env import build_spawn_env
from resume_ai.util import redact, truncate

logger = logging.getLogger(__name__)

DEFAULT_VERSION_TIMEOUT_SEC = 10.0


class CliProvider(BaseProvider):
    """Backend that runs an AI command-line tool in non-interactive mode.

    The prompt goes to stdin; the answer is read from stdout.  Subclasses only
    describe their argument vector and, when needed, their output envelope.
    """

    version_args: tuple = ("--version",)
    system_prompt_flag: Optional[str] = None

    def __init__(
        self,
        config: ProviderConfig,
        runner: Optional[ProcessRunner] = None,
        version_timeout_sec: float = DEFAULT_VERSION_TIMEOUT_SEC,
        env: Optional[Dict[str, str]] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        super().__init__(config, sleep=sleep)
        self._runner = runner or ProcessRunner()
        self._version_timeout_sec = version_timeout_sec
        self._env = env

    def build_args(self, request: ExecutionRequest, config: ProviderConfig) -> List[str]:
        raise NotImplementedError

    def build_stdin(self, request: ExecutionRequest) -> str:
        if request.system_prompt and not self.system_prompt_flag:
            return f"{request.system_prompt}\n\n{request.prompt}"
        return request.prompt

    def parse_output(self, stdout: str) -> Any:
        return unwrap(stdout)

    async def execute(
        self,
        request: ExecutionRequest,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        config = self._config
        timeout_ms = request.effective_timeout_ms(config)
        argv = [config.executable, *self.build_args(request, config)]
        if request.system_prompt and self.system_prompt_flag:
            argv += [self.system_prompt_flag, request.system_prompt]
        log_json(
            logger,
            "provider.execute.start",
            provider=self.name,
            output_format=request.output_format,
            timeout_ms=timeout_ms,
            prompt_chars=len(request.prompt),
        )
        started = time.monotonic()
        try:
            result = await self._runner.run(
                argv,
                stdin_text=self.build_stdin(request),
                timeout_sec=timeout_ms / 1000.0,
                cancel_token=cancel_token,
                env=self._spawn_env(),
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
            log_json(logger, "provider.execute.error", provider=self.name, kind="cli_not_found")
            return self._failure(
                ProviderErrorCode.PROVIDER_NOT_FOUND,
                f"{self.name} CLI not found or not executable: {config.executable}",
                executable=config.executable,
                reason=str(exc),
            )
        except OSError as exc:
            logger.exception("Failed to spawn %s CLI: %s", self.name, exc)
            return self._failure(
                ProviderErrorCode.UNKNOWN,
                f"Failed to start {self.name} CLI: {exc}",
                executable=config.executable,
            )

        response = self._interpret(result, request, config)
        log_json(
            logger,
            "provider.execute.finish",
            provider=self.name,
            status="completed" if response.ok else response.error.code.value,
            returncode=result.returncode,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        if result.stderr.strip():
            logger.debug("%s stderr:\n%s", self.name, redact(truncate(result.stderr)))
        return response

    def _interpret(self, result: CommandResult, request: ExecutionRequest, config: ProviderConfig) -> ExecutionResponse:
        if result.cancelled:
            return self._failure(ProviderErrorCode.CANCELLED, f"{self.name} execution was cancelled.")
        if result.timed_out:
            timeout_ms = request.effective_timeout_ms(config)
            return self._failure(
                ProviderErrorCode.TIMEOUT,
                f"{self.name} did not finish within {timeout_ms} ms.",
                timeout_ms=timeout_ms,
            )
        if result.signal_name:
            return self._failure(
                ProviderErrorCode.PROCESS_KILLED,
                f"{self.name} was terminated by {result.signal_name}.",
                signal=result.signal_name,
                stderr=truncate(redact(result.stderr)),
            )
        if result.returncode != 0:
            diagnostic = truncate(redact(result.stderr.strip() or result.stdout.strip()))
            message = f"{self.name} exited with code {result.returncode}."
            if diagnostic:
                message += f" {diagnostic}"
            return self._failure(
                ProviderErrorCode.NONZERO_EXIT,
                message,
                returncode=result.returncode,
                stderr=diagnostic,
            )

        stdout = result.stdout.strip()
        if request.output_format == "text":
            return ExecutionSuccess(raw_response=stdout)
        try:
            data = self.parse_output(stdout)
        except ResponseParseError as exc:
            return self._failure(
                ProviderErrorCode.INVALID_JSON,
                f"Failed to parse {self.name} output as JSON: {exc}",
                raw_response=truncate(stdout),
            )
        return ExecutionSuccess(raw_response=stdout, data=data)

    async def get_status(self) -> ProviderStatus:
        config = self._config
        try:
            result = await self._runner.run(
                [config.executable, *self.version_args],
                timeout_sec=self._version_timeout_sec,
                env=self._spawn_env(),
            )
        except OSError as exc:
            status = self._status(False, error=f"{self.name} CLI not found: {exc}")
        else:
            if result.timed_out:
                status = self._status(False, error="version check timed out")
            elif result.returncode != 0:
                status = self._status(False, error=f"version check exited with code {result.returncode}")
            else:
                status = self._status(True, version=redact(result.stdout.strip()) or None)
        log_json(
            logger,
            "provider.status",
            provider=self.name,
            available=status.available,
            version=status.version or "",
            error=status.error or "",
        )
        return status

    def _spawn_env(self) -> Dict[str, str]:
        return self._env if self._env is not None else build_spawn_env()


class ClaudeCliProvider(CliProvider):
    kind = ProviderKind.CLAUDE
    system_prompt_flag = "--append-system-prompt"

    def build_args(self, request: ExecutionRequest, config: ProviderConfig) -> List[str]:
        args = ["--print"]
        if request.output_format == "json":
            args += ["--output-format", "json"]
        if config.model:
            args += ["--model", config.model]
        return args


class CodexCliProvider(CliProvider):
    """Codex CLI; ``codex exec`` prints the final answer as plain text."""

    kind = ProviderKind.CODEX

    def build_args(self, request: ExecutionRequest, config: ProviderConfig) -> List[str]:
        args = ["exec", "-", "--color", "never", "--skip-git-repo-check"]
        if config.model:
            args += ["--model", config.model]
        return args

    def parse_output(self, stdout: str) -> Any:
        data = unwrap_inner_text(stdout)
        if isinstance(data, str):
            raise ResponseParseError("codex output contains no JSON value")
        return data


class GeminiCliProvider(CliProvider):
    """Gemini CLI; its JSON mode wraps the answer as ``{"response": "..."}``."""

    kind = ProviderKind.GEMINI

    def build_args(self, request: ExecutionRequest, config: ProviderConfig) -> List[str]:
        args: List[str] = []
        if config.model:
            args += ["--model", config.model]
        if request.output_format == "json":
            args += ["--output-format", "json"]
        return args

    def parse_output(self, stdout: str) -> Any:
        try:
            parsed = json.loads(stdout)
        except json.JSONDecodeError:
            # Older releases print the bare answer, often fenced.
            data = unwrap_inner_text(stdout)
            if isinstance(data, str):
                raise ResponseParseError("gemini output contains no JSON value")
            return data
        if isinstance(parsed, dict):
            for key in ("response", "result"):
                if isinstance(parsed.get(key), str):
                    return unwrap_inner_text(parsed[key])
        return parsed

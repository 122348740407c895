from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from resume_ai.domain.contracts import (
    CancellationSource,
    ExecutionRequest,
    ExecutionResponse,
    ExecutionSuccess,
    ProviderConfig,
    ProviderErrorCode,
    ProviderKind,
    ProviderStatus,
)
from resume_ai.observability.structured_log import log_json
from resume_ai.providers.base import CANCELLED, BaseProvider, SleepFn, wait_unless_cancelled
from resume_ai.providers.http_client import build_httpx_client
from resume_ai.providers.response_unwrap import unwrap_inner_text
from resume_ai.util import redact, truncate

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class OpenAIApiProvider(BaseProvider):
    """OpenAI-compatible chat-completions backend.

    ``config.executable`` holds the API base URL.  HTTP and network failures are
    mapped onto the same error codes the CLI backends use.
    """

    kind = ProviderKind.OPENAI

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        super().__init__(config, sleep=sleep)
        self._transport = transport

    async def execute(
        self,
        request: ExecutionRequest,
        cancel_token: Optional[CancellationSource] = None,
    ) -> ExecutionResponse:
        config = self._config
        if not config.api_key:
            return self._failure(ProviderErrorCode.AUTH_FAILED, "OpenAI API key is not configured.")
        log_json(
            logger,
            "provider.execute.start",
            provider=self.name,
            output_format=request.output_format,
            timeout_ms=request.effective_timeout_ms(config),
            prompt_chars=len(request.prompt),
        )
        started = time.monotonic()
        response = await self._call(request, config, cancel_token)
        log_json(
            logger,
            "provider.execute.finish",
            provider=self.name,
            status="completed" if response.ok else response.error.code.value,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return response

    async def _call(
        self,
        request: ExecutionRequest,
        config: ProviderConfig,
        cancel_token: Optional[CancellationSource],
    ) -> ExecutionResponse:
        timeout_ms = request.effective_timeout_ms(config)
        client = build_httpx_client(
            base_url=(config.executable or DEFAULT_OPENAI_BASE_URL).rstrip("/"),
            headers={"Authorization": f"Bearer {config.api_key}"},
            request_timeout_sec=timeout_ms / 1000.0,
            transport=self._transport,
        )
        async with client:
            post = client.post("/chat/completions", json=_build_payload(request, config))
            try:
                if cancel_token is None:
                    resp = await post
                else:
                    resp = await wait_unless_cancelled(post, cancel_token)
            except httpx.TimeoutException:
                return self._failure(
                    ProviderErrorCode.TIMEOUT,
                    f"OpenAI API did not answer within {timeout_ms} ms.",
                    timeout_ms=timeout_ms,
                )
            except httpx.ConnectError as exc:
                return self._failure(
                    ProviderErrorCode.PROVIDER_NOT_FOUND,
                    f"OpenAI API is unreachable: {exc}",
                    base_url=config.executable,
                )
            except httpx.HTTPError as exc:
                return self._failure(ProviderErrorCode.PROVIDER_ERROR, f"OpenAI API request failed: {exc}")
        if resp is CANCELLED:
            return self._failure(ProviderErrorCode.CANCELLED, "OpenAI request was cancelled.")
        return self._interpret(resp, request)

    def _interpret(self, resp: httpx.Response, request: ExecutionRequest) -> ExecutionResponse:
        status = resp.status_code
        if status in (401, 403):
            return self._failure(
                ProviderErrorCode.AUTH_FAILED,
                f"OpenAI API rejected the credentials (HTTP {status}).",
                status_code=status,
            )
        if status == 429:
            return self._failure(
                ProviderErrorCode.RATE_LIMITED,
                "OpenAI API rate limit reached.",
                status_code=status,
                retry_after=resp.headers.get("retry-after", ""),
            )
        if status >= 400:
            return self._failure(
                ProviderErrorCode.PROVIDER_ERROR,
                f"OpenAI API returned HTTP {status}.",
                status_code=status,
                body=truncate(redact(resp.text)),
            )

        try:
            content = _extract_content(resp.json())
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            return self._failure(
                ProviderErrorCode.INVALID_JSON,
                f"Unexpected OpenAI response body: {exc}",
                raw_response=truncate(resp.text),
            )
        content = content.strip()
        if request.output_format == "text":
            return ExecutionSuccess(raw_response=content)
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            data = unwrap_inner_text(content)
            if isinstance(data, str):
                return self._failure(
                    ProviderErrorCode.INVALID_JSON,
                    "OpenAI answer does not contain a JSON value.",
                    raw_response=truncate(content),
                )
        return ExecutionSuccess(raw_response=content, data=data)

    async def get_status(self) -> ProviderStatus:
        config = self._config
        if not config.api_key:
            return self._status(False, error="API key not configured")
        return self._status(True, version=f"openai/{config.model or DEFAULT_OPENAI_MODEL}")


def _build_payload(request: ExecutionRequest, config: ProviderConfig) -> Dict[str, Any]:
    messages: List[Dict[str, str]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    messages.append({"role": "user", "content": request.prompt})
    payload: Dict[str, Any] = {
        "model": config.model or DEFAULT_OPENAI_MODEL,
        "messages": messages,
    }
    if request.output_format == "json":
        payload["response_format"] = {"type": "json_object"}
    temperature = config.extra_options.get("temperature")
    if temperature is not None:
        payload["temperature"] = float(temperature)
    return payload


def _extract_content(body: Any) -> str:
    content = body["choices"][0]["message"]["content"]
    if not isinstance(content, str):
        raise TypeError("message content is not a string")
    return content

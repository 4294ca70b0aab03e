# core/llm_interface.py
"""
Handles all direct interactions with the text-generation provider.
Includes the async client with retry/backoff, prompt-cache headers,
model fallback, structured-output validation, usage extraction and
cost calculation.

The client holds configuration plus an injected ``httpx.AsyncClient``;
callers construct it explicitly and pass it down to the agents.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

# Standard library imports
import asyncio
import hashlib
import json
import math
import random
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

import httpx

# Third-party imports
import structlog
from pydantic import ValidationError

# Local imports
from config import settings
from core.usage import CostBreakdown, TokenUsage
from models.event_models import LLMCallInfo
from models.schemas import StructuredSchema
from utils.stage_logging import log_stage_error, log_stage_success

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ThinkingLevel = Literal["low", "medium", "high"]
SleepFn = Callable[[float], Awaitable[None]]

_THINKING_BUDGETS: dict[str, int] = {"low": 256, "medium": 512, "high": 1024}
_CACHE_STATUS_HEADERS = ("x-openrouter-cache", "x-cache", "x-cache-status")
_RETRYABLE_MESSAGE_MARKERS = ("timeout", "network", "fetch", "econnreset")
_SECRET_PATTERN = re.compile(r"(Bearer\s+)[\w\-\.]+|sk-[\w\-]{8,}", re.IGNORECASE)


# --- Errors ---


class LLMError(Exception):
    """Base class for all LLM client failures."""


class LLMConfigurationError(LLMError):
    """Client cannot be used at all (e.g. no API key). Fatal for a batch."""


class ProviderError(LLMError):
    """The provider answered with an error status or could not be reached."""

    def __init__(
        self, message: str, status: int | None = None, model: str | None = None
    ):
        super().__init__(message)
        self.status = status
        self.model = model


class TransientProviderError(ProviderError):
    """429, 5xx or transport failure. Retried, then eligible for fallback."""


class PermanentProviderError(ProviderError):
    """Non-429 4xx. Surfaced immediately."""


class ProviderResponseError(LLMError):
    """The provider answered 2xx but the body carried no usable content."""


class SchemaValidationError(LLMError):
    """Decoded output did not satisfy the request's structured schema."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


# --- Request / result records ---


@dataclass(frozen=True)
class GenerationOptions:
    model: str
    fallback_model: str | None = None
    temperature: float = settings.TEMPERATURE_DEFAULT
    max_output_tokens: int = settings.MAX_OUTPUT_TOKENS_DEFAULT
    thinking_level: ThinkingLevel = "medium"
    cacheable: bool = settings.CACHE_SYSTEM_PROMPT
    cache_ttl_seconds: int = settings.CACHE_TTL_SECONDS
    structured_outputs: bool = settings.STRUCTURED_OUTPUTS
    namespace: str = "default"


@dataclass(frozen=True)
class GenerationRequest(Generic[T]):
    system_prompt: str
    options: GenerationOptions
    user_prompt: str = ""
    schema: StructuredSchema[T] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.system_prompt or not self.system_prompt.strip():
            raise ValueError("GenerationRequest requires a non-empty system prompt.")


@dataclass(frozen=True)
class GenerationResult(Generic[T]):
    """Validated output of one logical generation call."""

    data: T
    raw_text: str
    request_id: str
    model: str
    usage: TokenUsage
    cost: CostBreakdown
    cache_hit: bool = False
    fallback_from: str | None = None
    reasoning: str | None = None
    duration_ms: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    def call_info(self) -> LLMCallInfo:
        return LLMCallInfo(
            request_id=self.request_id,
            model=self.model,
            usage=self.usage,
            cost_usd=self.cost.total_usd,
            cache_hit=self.cache_hit,
            fallback_from=self.fallback_from,
        )


# --- Pure helpers ---


def build_cache_key(namespace: str, system_prompt: str) -> str:
    """Deterministic prompt-cache key for a system prompt within a namespace."""
    digest = hashlib.sha256(system_prompt.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


def calculate_backoff_delay(
    attempt: int,
    base_seconds: float = settings.LLM_BACKOFF_BASE_SECONDS,
    max_seconds: float = settings.LLM_MAX_BACKOFF_SECONDS,
    jitter_ratio: float = settings.LLM_JITTER_RATIO,
    rng: Callable[[], float] = random.random,
) -> float:
    """Exponential backoff with symmetric jitter, capped at ``max_seconds``."""
    exponential = base_seconds * (2**attempt)
    jitter = 1 + (rng() * 2 - 1) * jitter_ratio
    return min(exponential * jitter, max_seconds)


def estimate_tokens(text: str) -> int:
    return max(1, math.ceil(len(text or "") / settings.FALLBACK_CHARS_PER_TOKEN))


def map_thinking_level(level: str) -> dict[str, Any]:
    return {"effort": level, "budget_tokens": _THINKING_BUDGETS.get(level, 512)}


def sanitize_for_logging(text: str, limit: int = 300) -> str:
    """Mask credentials and shorten provider error bodies before logging."""
    masked = _SECRET_PATTERN.sub(
        lambda m: f"{m.group(1)}***" if m.group(1) else "sk-***", text or ""
    )
    return masked[:limit]


def is_retryable_error(error: BaseException) -> bool:
    if isinstance(error, TransientProviderError | ProviderResponseError):
        return True
    if isinstance(error, PermanentProviderError | SchemaValidationError):
        return False
    if isinstance(error, httpx.TransportError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _RETRYABLE_MESSAGE_MARKERS)


def build_messages(system_prompt: str, user_prompt: str) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}]
    if user_prompt and user_prompt.strip():
        messages.append({"role": "user", "content": user_prompt})
    return messages


def _join_text_parts(parts: list[Any]) -> str:
    pieces: list[str] = []
    for part in parts:
        if isinstance(part, str):
            pieces.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            pieces.append(part["text"])
    return "".join(pieces)


def extract_text_from_response(data: dict[str, Any]) -> tuple[str, str | None]:
    """Pull the output text and optional reasoning summary from a provider body.

    Supports chat-completion ``choices`` and the ``output`` block layout, plus a
    top-level ``output_text``. Raises ``ProviderResponseError`` otherwise.
    """
    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") or {}
        content = message.get("content")
        reasoning = message.get("reasoning_content") or message.get("reasoning")
        if isinstance(content, list):
            content = _join_text_parts(content)
        if isinstance(content, str) and content.strip():
            return content, reasoning if isinstance(reasoning, str) else None

    output = data.get("output")
    if isinstance(output, list) and output:
        text = ""
        reasoning_text: str | None = None
        for block in output:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "message":
                for part in block.get("content") or []:
                    if isinstance(part, dict) and part.get("type") == "output_text":
                        text += part.get("text") or ""
            elif block.get("type") == "reasoning":
                summary = block.get("summary") or []
                reasoning_text = "\n".join(
                    item.get("text", "") if isinstance(item, dict) else str(item)
                    for item in summary
                )
        if text.strip():
            return text, reasoning_text

    output_text = data.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text, None

    raise ProviderResponseError("Provider response contained no text content.")


def extract_json_payload(text: str) -> Any:
    """Decode JSON from model text: fenced block, whole text, then object/array slice."""
    fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", text, flags=re.DOTALL)
    candidates: list[str] = []
    if fenced:
        candidates.append(fenced.group(1))
    candidates.append(text.strip())
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise SchemaValidationError("Model output is not valid JSON.", raw_text=text)


def _first_int(*values: Any) -> int | None:
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int | float):
            return int(value)
    return None


def compute_usage(
    usage_data: dict[str, Any] | None,
    prompt_text: str,
    output_text: str,
    reasoning_text: str = "",
) -> TokenUsage:
    """Read provider usage, estimating any missing count from the matching text."""
    usage_data = usage_data or {}
    details = usage_data.get("output_tokens_details") or {}
    input_tokens = _first_int(
        usage_data.get("prompt_tokens"), usage_data.get("input_tokens")
    )
    output_tokens = _first_int(
        usage_data.get("completion_tokens"), usage_data.get("output_tokens")
    )
    reasoning_tokens = _first_int(
        usage_data.get("reasoning_tokens"), details.get("reasoning_tokens")
    )
    if input_tokens is None:
        input_tokens = estimate_tokens(prompt_text)
    if output_tokens is None:
        output_tokens = estimate_tokens(output_text)
    if reasoning_tokens is None and reasoning_text:
        reasoning_tokens = estimate_tokens(reasoning_text)
    return TokenUsage.of(input_tokens, output_tokens, reasoning_tokens or 0)


def compute_cost(model: str, usage: TokenUsage, cache_hit: bool = False) -> CostBreakdown:
    """Price one call. Reasoning tokens are billed on their own line."""
    price = settings.price_for(model)
    billed_input = usage.input_tokens
    if cache_hit:
        billed_input = math.ceil(usage.input_tokens * settings.CACHE_HIT_INPUT_RATE)
    input_usd = billed_input / 1_000_000 * price.get("input", 0.0)
    full_input_usd = usage.input_tokens / 1_000_000 * price.get("input", 0.0)
    output_usd = usage.output_tokens / 1_000_000 * price.get("output", 0.0)
    reasoning_usd = usage.reasoning_tokens / 1_000_000 * price.get("reasoning", 0.0)
    return CostBreakdown(
        input_usd=round(input_usd, 6),
        output_usd=round(output_usd, 6),
        reasoning_usd=round(reasoning_usd, 6),
        cache_savings_usd=round(full_input_usd - input_usd, 6),
        total_usd=round(input_usd + output_usd + reasoning_usd, 6),
    )


def read_cache_status(headers: httpx.Headers) -> tuple[bool, str | None]:
    for name in _CACHE_STATUS_HEADERS:
        value = headers.get(name)
        if value:
            return "hit" in value.lower(), value
    return False, None


# --- Client ---


class LLMClient:
    """Async client for an OpenRouter-style chat completions endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None = settings.OPENROUTER_API_KEY,
        api_base: str = settings.OPENROUTER_API_BASE,
        max_attempts: int = settings.LLM_RETRY_ATTEMPTS,
        backoff_base_seconds: float = settings.LLM_BACKOFF_BASE_SECONDS,
        max_backoff_seconds: float = settings.LLM_MAX_BACKOFF_SECONDS,
        jitter_ratio: float = settings.LLM_JITTER_RATIO,
        sleep: SleepFn = asyncio.sleep,
        extra_headers: dict[str, str] | None = None,
    ):
        if not api_key or not api_key.strip():
            raise LLMConfigurationError(
                "OPENROUTER_API_KEY is not set; cannot construct LLM client."
            )
        self._client = http_client
        self._api_key = api_key.strip()
        self._api_base = api_base
        self._max_attempts = max(1, max_attempts)
        self._backoff_base_seconds = backoff_base_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._jitter_ratio = jitter_ratio
        self._sleep = sleep
        self._extra_headers = extra_headers or {
            "HTTP-Referer": settings.HTTP_REFERER,
            "X-Title": settings.HTTP_TITLE,
        }

    async def generate(self, request: GenerationRequest[T]) -> GenerationResult[T]:
        """Run one logical call: primary model with retries, then one fallback pass."""
        request_id = str(request.metadata.get("request_id") or uuid.uuid4())
        options = request.options
        started = time.monotonic()
        try:
            try:
                result = await self._execute_with_retry(
                    request, request_id, options.model
                )
            except LLMError as primary_error:
                fallback_model = options.fallback_model
                if (
                    not fallback_model
                    or fallback_model == options.model
                    or not is_retryable_error(primary_error)
                ):
                    raise
                logger.warning(
                    f"[{request_id}] primary model '{options.model}' failed; "
                    f"falling back to '{fallback_model}'.",
                    error=sanitize_for_logging(str(primary_error)),
                )
                try:
                    result = await self._execute_with_retry(
                        request, request_id, fallback_model, fallback_from=options.model
                    )
                except LLMError as fallback_error:
                    logger.error(
                        f"[{request_id}] fallback model '{fallback_model}' also failed.",
                        error=sanitize_for_logging(str(fallback_error)),
                    )
                    raise primary_error from fallback_error
        except LLMError as exc:
            log_stage_error(
                options.namespace,
                exc,
                request_id=request_id,
                year=request.metadata.get("year"),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise

        log_stage_success(
            options.namespace,
            "llm call completed",
            request_id=request_id,
            year=request.metadata.get("year"),
            tokens=result.usage.to_dict(),
            cost_usd=result.cost.total_usd,
            duration_ms=result.duration_ms,
            model=result.model,
            cache_hit=result.cache_hit,
            fallback_from=result.fallback_from,
        )
        return result

    async def _execute_with_retry(
        self,
        request: GenerationRequest[T],
        request_id: str,
        model: str,
        fallback_from: str | None = None,
    ) -> GenerationResult[T]:
        last_error: LLMError | None = None
        for attempt in range(self._max_attempts):
            started = time.monotonic()
            try:
                result = await self._execute_once(request, request_id, model)
                return self._finalize(
                    request, request_id, model, result, started, fallback_from
                )
            except (PermanentProviderError, SchemaValidationError):
                raise
            except ProviderResponseError as exc:
                last_error = exc
            except TransientProviderError as exc:
                last_error = exc
            except httpx.TransportError as exc:
                last_error = TransientProviderError(
                    f"Transport failure calling '{model}': {exc}", model=model
                )

            logger.warning(
                f"[{request_id}] attempt {attempt + 1}/{self._max_attempts} "
                f"for '{model}' failed: {sanitize_for_logging(str(last_error))}"
            )
            if attempt < self._max_attempts - 1:
                delay = calculate_backoff_delay(
                    attempt,
                    self._backoff_base_seconds,
                    self._max_backoff_seconds,
                    self._jitter_ratio,
                )
                logger.info(f"[{request_id}] retrying in {delay:.2f}s")
                await self._sleep(delay)

        if last_error is None:
            raise ProviderError(
                f"No attempt was made against '{model}'.", model=model
            )
        raise last_error

    async def _execute_once(
        self, request: GenerationRequest[T], request_id: str, model: str
    ) -> tuple[dict[str, Any], httpx.Headers, str | None]:
        options = request.options
        headers = {
            **self._extra_headers,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        cache_key: str | None = None
        if options.cacheable:
            cache_key = build_cache_key(options.namespace, request.system_prompt)
            headers["X-Cache-Key"] = cache_key
            headers["X-Cache-TTL"] = str(options.cache_ttl_seconds)
            headers["X-Cache-Enable"] = "true"

        messages = build_messages(request.system_prompt, request.user_prompt)
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": options.temperature,
            "max_output_tokens": options.max_output_tokens,
            "reasoning": map_thinking_level(options.thinking_level),
        }
        if request.schema is not None and options.structured_outputs:
            payload["response_format"] = request.schema.response_format()

        logger.debug(
            f"[{request_id}] calling '{model}' messages={len(messages)} "
            f"cacheKey={cache_key or 'none'}"
        )
        response = await self._client.post(
            self._api_base, json=payload, headers=headers
        )
        if response.status_code >= 400:
            detail = sanitize_for_logging(response.text)
            message = f"Provider request failed ({response.status_code}) for '{model}'"
            logger.error(f"[{request_id}] HTTP error {response.status_code}: {detail}")
            if response.status_code == 429 or response.status_code >= 500:
                raise TransientProviderError(
                    message, status=response.status_code, model=model
                )
            raise PermanentProviderError(
                message, status=response.status_code, model=model
            )

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderResponseError(
                f"Provider returned a non-JSON body for '{model}'."
            ) from exc
        if not isinstance(body, dict):
            raise ProviderResponseError(
                f"Provider returned an unexpected body for '{model}'."
            )
        return body, response.headers, cache_key

    def _finalize(
        self,
        request: GenerationRequest[T],
        request_id: str,
        model: str,
        response: tuple[dict[str, Any], httpx.Headers, str | None],
        started: float,
        fallback_from: str | None,
    ) -> GenerationResult[T]:
        body, headers, cache_key = response
        text, reasoning = extract_text_from_response(body)

        data: Any = text
        if request.schema is not None:
            payload = extract_json_payload(text)
            try:
                data = request.schema.validate(payload)
            except (ValidationError, ValueError) as exc:
                raise SchemaValidationError(
                    f"Output failed {request.schema.name} validation: {exc}",
                    raw_text=text,
                ) from exc

        cache_hit, cache_status = read_cache_status(headers)
        cache_hit = request.options.cacheable and cache_hit
        prompt_text = request.system_prompt + request.user_prompt
        usage = compute_usage(
            body.get("usage"), prompt_text, text, reasoning or ""
        )
        cost = compute_cost(model, usage, cache_hit=cache_hit)
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"[{request_id}] '{model}' usage - in: {usage.input_tokens} tk, "
            f"out: {usage.output_tokens} tk, reasoning: {usage.reasoning_tokens} tk",
            cache_hit=cache_hit,
            cost_usd=cost.total_usd,
        )
        return GenerationResult(
            data=data,
            raw_text=text,
            request_id=request_id,
            model=model,
            usage=usage,
            cost=cost,
            cache_hit=cache_hit,
            fallback_from=fallback_from,
            reasoning=reasoning,
            duration_ms=duration_ms,
            metadata={
                **request.metadata,
                "request_id": request_id,
                "cache_key": cache_key,
                "cache_status": cache_status,
                "cache_hit": cache_hit,
                "provider_id": body.get("id"),
            },
        )

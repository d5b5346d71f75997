"""
Fallback interpreter for VoxCalc.

Provides a unified interface to the services that can interpret an
expression the primary grammar rejected:
- A plain HTTP interpretation service ({"input"} -> {"result"})
- OpenAI chat models
- Anthropic (Claude)
- Local models via an OpenAI-compatible API

The interpreter is a best-effort second stage: it is called only after a
ParseError and every failure is converted into a Failure value.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime

import httpx
import structlog
from pydantic import ValidationError

from voxcalc.config import settings
from voxcalc.errors import FallbackError
from voxcalc.models import (
    Failure,
    FailureKind,
    FallbackReason,
    FallbackRequest,
    FallbackResponse,
    EvaluationResult,
    Success,
)

logger = structlog.get_logger()

# Marker the service uses to decline an input
ERROR_MARKER = "Error"

SYSTEM_PROMPT = """You are a calculator. The user sends an arithmetic expression that may be \
informally worded, dictated, or slightly malformed (for example a missing closing parenthesis \
or number words). Work out what calculation was meant and compute it.

Respond with a single JSON object and nothing else:
{"result": "<value>"}

<value> is the numeric answer as a plain decimal string (no units, no thousands separators), \
rounded to at most 10 decimal places. If the input cannot be interpreted as a calculation, \
respond with {"result": "Error"}."""


def parse_service_reply(payload: str | dict) -> str:
    """
    Validate a service reply against the boundary contract.

    Accepts either decoded JSON or raw model text containing a JSON object.

    Raises:
        FallbackError: If the reply is not a ``{"result": str}`` object
    """
    try:
        if isinstance(payload, str):
            text = payload.strip()
            # Chat models sometimes wrap the object in prose or code fences
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end < start:
                raise FallbackError(f"No JSON object in reply: {text[:80]!r}")
            response = FallbackResponse.model_validate_json(text[start:end + 1])
        else:
            response = FallbackResponse.model_validate(payload)
    except ValidationError as e:
        raise FallbackError(f"Malformed fallback reply: {e}") from e

    result = response.result.strip()
    if not result:
        raise FallbackError("Empty fallback result")
    return result


class FallbackProvider(ABC):
    """Abstract base class for fallback interpretation services."""

    name: str = "abstract"

    @abstractmethod
    async def interpret(self, text: str) -> str:
        """
        Ask the service to interpret raw input.

        Returns the service's result string, which may be the error marker.
        Raises FallbackError or transport exceptions on failure.
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        pass


class HttpServiceProvider(FallbackProvider):
    """Plain JSON interpretation service."""

    name = "http"

    def __init__(self, url: str | None = None, client: httpx.AsyncClient | None = None):
        self.url = url or settings.fallback_url
        self.client = client or httpx.AsyncClient(timeout=settings.fallback_timeout_seconds)

    async def interpret(self, text: str) -> str:
        response = await self.client.post(self.url, json=FallbackRequest(input=text).model_dump())
        response.raise_for_status()
        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise FallbackError("Fallback service returned invalid JSON") from e
        return parse_service_reply(payload)

    async def aclose(self) -> None:
        await self.client.aclose()


class OpenAIProvider(FallbackProvider):
    """OpenAI API provider."""

    name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        import openai

        self.api_key = api_key or (
            settings.openai_api_key.get_secret_value()
            if settings.openai_api_key else None
        )
        if not self.api_key:
            raise FallbackError("OpenAI API key is not configured")
        self.model = model or settings.openai_model
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

    async def interpret(self, text: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            temperature=settings.fallback_temperature,
            max_tokens=settings.fallback_max_tokens,
            response_format={"type": "json_object"},
        )
        return parse_service_reply(response.choices[0].message.content or "")

    async def aclose(self) -> None:
        await self.client.close()


class AnthropicProvider(FallbackProvider):
    """Anthropic API provider."""

    name = "anthropic"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        import anthropic

        self.api_key = api_key or (
            settings.anthropic_api_key.get_secret_value()
            if settings.anthropic_api_key else None
        )
        if not self.api_key:
            raise FallbackError("Anthropic API key is not configured")
        self.model = model or settings.anthropic_model
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def interpret(self, text: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": text}],
            max_tokens=settings.fallback_max_tokens,
            temperature=settings.fallback_temperature,
        )

        content = "".join(block.text for block in response.content if block.type == "text")
        return parse_service_reply(content)

    async def aclose(self) -> None:
        await self.client.close()


class LocalProvider(FallbackProvider):
    """Local model provider via an OpenAI-compatible API (vLLM, llama.cpp, ...)."""

    name = "local"

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url or settings.local_model_url
        self.model = model or settings.local_model_name
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.fallback_timeout_seconds,
        )

    async def interpret(self, text: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "temperature": settings.fallback_temperature,
            "max_tokens": settings.fallback_max_tokens,
        }

        response = await self.client.post("/chat/completions", json=payload)
        response.raise_for_status()
        data = response.json()

        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError) as e:
            raise FallbackError("Unexpected chat completion shape") from e
        return parse_service_reply(content)

    async def aclose(self) -> None:
        await self.client.aclose()


def create_provider(name: str | None = None) -> FallbackProvider | None:
    """Build the configured provider; ``none`` disables the fallback."""
    name = name or settings.fallback_provider
    if name == "none":
        return None
    if name == "http":
        return HttpServiceProvider()
    if name == "openai":
        return OpenAIProvider()
    if name == "anthropic":
        return AnthropicProvider()
    if name == "local":
        return LocalProvider()
    raise ValueError(f"Unknown fallback provider: {name}")


class FallbackInterpreter:
    """
    Second pipeline stage.

    Sends the original, unnormalized input to the configured provider and
    converts every outcome into an EvaluationResult. A missing answer within
    the timeout is treated exactly like a failed call.
    """

    def __init__(
        self,
        provider: FallbackProvider | None = None,
        provider_name: str | None = None,
        timeout: float | None = None,
    ):
        self.provider_name = provider.name if provider else (provider_name or settings.fallback_provider)
        self.timeout = timeout if timeout is not None else settings.fallback_timeout_seconds
        self._provider = provider
        self._resolved = provider is not None

    def _get_provider(self) -> FallbackProvider | None:
        """Get or create the provider."""
        if not self._resolved:
            self._provider = create_provider(self.provider_name)
            self._resolved = True
        return self._provider

    async def interpret(self, raw_input: str) -> EvaluationResult:
        """Interpret raw input; never raises."""
        logger.info("Invoking fallback interpreter", provider=self.provider_name, chars=len(raw_input))
        start_time = datetime.utcnow()

        try:
            provider = self._get_provider()
            if provider is None:
                raise FallbackError("Fallback interpreter is disabled")
            result = await asyncio.wait_for(provider.interpret(raw_input), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Fallback interpreter timed out", provider=self.provider_name, timeout_s=self.timeout)
            return Failure(FailureKind.FALLBACK_ERROR, FallbackReason.UNAVAILABLE, "timeout")
        except Exception as e:
            logger.warning("Fallback interpreter failed", provider=self.provider_name, error=str(e))
            return Failure(FailureKind.FALLBACK_ERROR, FallbackReason.UNAVAILABLE, str(e))

        duration = (datetime.utcnow() - start_time).total_seconds()

        if result == ERROR_MARKER:
            logger.info("Fallback interpreter declined input", provider=self.provider_name, duration_s=duration)
            return Failure(FailureKind.FALLBACK_ERROR, FallbackReason.DECLINED, "service returned error marker")

        logger.info("Fallback interpreter answered", provider=self.provider_name, duration_s=duration)
        return Success(text=result, via_fallback=True)

    async def aclose(self) -> None:
        if self._provider is not None:
            await self._provider.aclose()


# Global interpreter instance
_interpreter: FallbackInterpreter | None = None


def get_fallback_interpreter() -> FallbackInterpreter:
    """Get the global fallback interpreter instance."""
    global _interpreter
    if _interpreter is None:
        _interpreter = FallbackInterpreter()
    return _interpreter

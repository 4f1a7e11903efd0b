"""AI provider interface and implementations."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from ..resilience.errors import ProviderError


class ProviderSpec(BaseModel):
    """Static description of one provider's free-tier limits."""

    name: str = Field(..., description="Provider name, also the settings key prefix")
    daily_limit: int = Field(..., description="Requests per calendar day", ge=0)
    hourly_limit: int = Field(..., description="Requests per clock hour", ge=0)
    minute_limit: int = Field(..., description="Requests per clock minute", ge=0)
    priority: int = Field(..., description="Lower is preferred", ge=1)
    est_tokens: int = Field(2000, description="Estimated tokens per call", ge=0)
    is_free: bool = Field(True, description="Whether calls are free of charge")
    model: str = Field(..., description="Model name sent to the API")


class AIProvider(ABC):
    """Abstract base class for text-generation providers."""

    def __init__(self, spec: ProviderSpec) -> None:
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    @abstractmethod
    async def dispatch(
        self,
        prompt: str,
        api_key: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> str:
        """
        Send one prompt and return the generated text.

        Args:
            prompt: Full prompt text
            api_key: Provider API key
            max_tokens: Completion token cap
            temperature: Sampling temperature
            timeout: Request timeout in seconds

        Raises:
            ProviderError: on HTTP failure, timeout, quota exhaustion or an
                empty completion
        """
        pass


class OpenAICompatibleProvider(AIProvider):
    """Provider speaking the OpenAI chat-completions API."""

    def __init__(self, spec: ProviderSpec, base_url: Optional[str] = None) -> None:
        super().__init__(spec)
        self.base_url = base_url

    async def dispatch(
        self,
        prompt: str,
        api_key: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> str:
        try:
            async with AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                timeout=timeout,
                max_retries=0,
            ) as client:
                response = await client.chat.completions.create(
                    model=self.spec.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
        except openai.APIStatusError as e:
            raise ProviderError(str(e), provider=self.name, status_code=e.status_code) from e
        except openai.APITimeoutError as e:
            raise ProviderError("Request timed out", provider=self.name) from e
        except openai.APIError as e:
            raise ProviderError(str(e), provider=self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ProviderError("Empty completion", provider=self.name)
        return content.strip()


class HTTPProvider(AIProvider):
    """Provider called through a plain JSON HTTP API."""

    def __init__(self, spec: ProviderSpec, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(spec)
        self.transport = transport

    async def _post(
        self,
        url: str,
        payload: Dict[str, Any],
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            message = f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            raise ProviderError(message, provider=self.name, status_code=e.response.status_code) from e
        except httpx.TimeoutException as e:
            raise ProviderError("Request timed out", provider=self.name) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Request failed: {e}", provider=self.name) from e
        except ValueError as e:
            raise ProviderError(f"Invalid JSON response: {e}", provider=self.name) from e

    def _require_text(self, text: Optional[str]) -> str:
        if not text or not text.strip():
            raise ProviderError("Empty completion", provider=self.name)
        return text.strip()


class GeminiProvider(HTTPProvider):
    """Google Gemini generateContent API."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    async def dispatch(
        self,
        prompt: str,
        api_key: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> str:
        data = await self._post(
            f"{self.BASE_URL}/models/{self.spec.model}:generateContent",
            {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
            },
            timeout=timeout,
            params={"key": api_key},
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text)


class CohereProvider(HTTPProvider):
    """Cohere generate API."""

    URL = "https://api.cohere.ai/v1/generate"

    async def dispatch(
        self,
        prompt: str,
        api_key: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> str:
        data = await self._post(
            self.URL,
            {
                "model": self.spec.model,
                "prompt": prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        try:
            text = data["generations"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text)


class MockProvider(AIProvider):
    """Mock provider for testing."""

    def __init__(
        self,
        spec: ProviderSpec,
        reply: Optional[Callable[[str], str]] = None,
        error: Optional[ProviderError] = None,
    ) -> None:
        super().__init__(spec)
        self.reply = reply
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def dispatch(
        self,
        prompt: str,
        api_key: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ) -> str:
        self.calls.append({"prompt": prompt, "api_key": api_key, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        if self.reply is not None:
            return self.reply(prompt)
        return f"Mock {self.name} text for: {prompt[:40]}"

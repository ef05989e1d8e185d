"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

from subtranslator.backends.base import ProviderClient
from subtranslator.errors import ConfigurationError, ProviderTransportError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TIMEOUT_SECONDS = 120.0


class OpenAIProvider(ProviderClient):
    """Provider using the async OpenAI SDK (works with any compatible base URL)."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key required. Use --api-key or set OPENAI_API_KEY."
            )
        try:
            import openai
        except ImportError:
            raise ConfigurationError(
                "OpenAI provider requires the 'openai' package. "
                "Install it with: pip install openai"
            ) from None
        self._openai = openai
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            timeout=timeout,
            # Retries are the orchestrator's job
            max_retries=0,
        )
        self.temperature = temperature

    async def complete(self, model: str, instruction: str, user_content: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": user_content},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except self._openai.BadRequestError as e:
            # Unknown model, unsupported parameter: retrying won't help
            raise ConfigurationError(f"Provider rejected the request: {e}") from e
        except (self._openai.APIError, ConnectionError, TimeoutError) as e:
            raise ProviderTransportError(f"Translation service unavailable: {e}") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        return content or ""

    async def aclose(self) -> None:
        await self._client.close()

"""Abstract base class for translation providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ProviderClient(ABC):
    """Interface for LLM providers: one instruction + one user message in, text out.

    Implementations perform a single request. Retry and backoff policy belongs
    to the orchestrator, not to the client.
    """

    name: str = "provider"

    @abstractmethod
    async def complete(self, model: str, instruction: str, user_content: str) -> str:
        """Send one request and return the raw content of the reply.

        Args:
            model: Model identifier understood by the provider.
            instruction: System instruction.
            user_content: User message.

        Returns:
            The content string of the provider's reply (may be empty).

        Raises:
            ProviderTransportError: Network, authentication or rate-limit failure.
            ConfigurationError: The client is misconfigured.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. Default implementation does nothing."""
        return None

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class LLMProvider(ABC):
    """
    Abstract Base Class for all chat-completion providers.
    This defines the contract that all concrete provider implementations must follow.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """The official name of the provider (e.g., 'OpenAI', 'Ollama')."""
        pass

    @abstractmethod
    def get_available_models(self) -> List[str]:
        """
        Returns a list of available model names for this provider.

        Returns:
            A list of strings, where each string is a model identifier.
        """
        pass

    @abstractmethod
    def complete(
        self,
        model_name: str,
        messages: List[Dict[str, Any]],
        config: Dict[str, Any],
        *,
        json_mode: bool = False,
        timeout: float = 30.0,
    ) -> str:
        """
        Request a single chat completion.

        Args:
            model_name: The specific model to use for the chat.
            messages: Role-tagged messages in chat-completions format. ``content``
                is either a string or a list of ``text``/``image_url`` parts.
            config: Generation parameters like 'temperature' and 'top_p'.
            json_mode: Ask the service for a strictly parseable JSON object.
            timeout: Seconds to wait for the response.

        Returns:
            The assistant's reply text.
        """
        pass

"""Ollama LLM Provider for DataSight."""
import logging
import os
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class OllamaProvider:
    """
    Provider for Ollama local models.

    Ollama runs locally, so typically no API key is needed.
    Checks OLLAMA_HOST environment variable for custom server location.
    """

    def __init__(self, host: Optional[str] = None) -> None:
        """Initialize Ollama provider."""
        self.provider_name = "Ollama"
        self.host = self._get_ollama_host(host)
        self._clients: Dict[float, Any] = {}

        logger.info("OllamaProvider initialized with host: %s", self.host)
        self._init_client()

    def _get_ollama_host(self, configured: Optional[str]) -> str:
        """
        Resolve the Ollama server host: environment first, then settings, then the default.
        """
        env_host = os.getenv("OLLAMA_HOST")
        if env_host:
            logger.info("Using custom OLLAMA_HOST from environment: %s", env_host)
            return env_host
        return configured or "http://localhost:11434"

    def _init_client(self) -> None:
        """Import the Ollama client library."""
        try:
            import ollama
            self._ollama = ollama
            logger.debug("Ollama client library loaded")
        except ImportError as exc:
            logger.error(
                "Failed to import ollama. "
                "Install with: pip install ollama"
            )
            raise ImportError(
                "ollama package not installed. "
                "Install with: pip install ollama"
            ) from exc

    def _client(self, timeout: float) -> Any:
        client = self._clients.get(timeout)
        if client is None:
            client = self._ollama.Client(host=self.host, timeout=timeout)
            self._clients[timeout] = client
        return client

    def get_available_models(self) -> List[str]:
        """
        Return list of installed Ollama models, or an empty list when the server is unreachable.
        """
        try:
            response = self._client(10.0).list()
            models = [model["model"] for model in response["models"]]
            if not models:
                logger.warning(
                    "No Ollama models found. "
                    "Install models with: ollama pull <model-name>"
                )
            return models
        except Exception as exc:
            logger.warning("Failed to list Ollama models (is Ollama running?): %s", exc)
            return []

    @staticmethod
    def _to_ollama_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Flatten multi-part content into Ollama's text + base64 ``images`` shape."""
        converted: List[Dict[str, Any]] = []
        for message in messages:
            content = message.get("content", "")
            if isinstance(content, str):
                converted.append({"role": message["role"], "content": content})
                continue

            texts: List[str] = []
            images: List[str] = []
            for part in content:
                if part.get("type") == "text":
                    texts.append(part.get("text", ""))
                elif part.get("type") == "image_url":
                    url = (part.get("image_url") or {}).get("url", "")
                    # data:<mime>;base64,<payload>
                    _, _, encoded = url.partition(",")
                    if encoded:
                        images.append(encoded)
            entry: Dict[str, Any] = {"role": message["role"], "content": "\n".join(texts)}
            if images:
                entry["images"] = images
            converted.append(entry)
        return converted

    def complete(
        self,
        model_name: str,
        messages: List[Dict[str, Any]],
        config: Dict[str, Any],
        *,
        json_mode: bool = False,
        timeout: float = 30.0,
    ) -> str:
        options = {
            "temperature": config.get("temperature", 0.7),
            "top_p": config.get("top_p", 0.95),
        }
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["format"] = "json"

        try:
            response = self._client(timeout).chat(
                model=model_name,
                messages=self._to_ollama_messages(messages),
                stream=False,
                options=options,
                **kwargs,
            )
        except Exception as exc:
            logger.error("Ollama chat failed for model '%s': %s", model_name, exc)
            raise

        return response["message"]["content"] or ""

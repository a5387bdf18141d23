"""OpenAI-compatible hosted chat-completions provider."""
import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """
    Provider for any service exposing the ``/chat/completions`` endpoint.

    Image parts are sent as ``image_url`` entries holding data URLs, so
    uploaded files travel inline with the user message.
    """

    def __init__(self, base_url: str, api_key: Optional[str], session: Optional[requests.Session] = None) -> None:
        self.provider_name = "OpenAI"
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()

        if self.api_key:
            logger.info("OpenAIProvider initialized for %s", self.base_url)
        else:
            logger.warning(
                "OpenAIProvider initialized without API key. "
                "Set DATASIGHT_API_KEY or OPENAI_API_KEY, or configure api_keys.openai in user_settings.json"
            )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def get_available_models(self) -> List[str]:
        try:
            response = self.session.get(f"{self.base_url}/models", headers=self._headers(), timeout=10)
            response.raise_for_status()
            models = [item["id"] for item in response.json().get("data", []) if "id" in item]
            logger.debug("Available models: %s", models)
            return models
        except (requests.RequestException, ValueError, KeyError) as exc:
            logger.warning("Failed to list models from %s: %s", self.base_url, exc)
            return []

    def complete(
        self,
        model_name: str,
        messages: List[Dict[str, Any]],
        config: Dict[str, Any],
        *,
        json_mode: bool = False,
        timeout: float = 30.0,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
            "temperature": config.get("temperature", 0.7),
            "top_p": config.get("top_p", 0.95),
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        response = self.session.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=self._headers(),
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError(f"Unexpected completion payload: {data!r}") from exc
        return content or ""

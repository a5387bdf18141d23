import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from src.datasight.config import DEFAULT_REQUEST_TIMEOUT_SECONDS, SETTINGS_FILE

logger = logging.getLogger(__name__)

# Supported completion backends paired with display labels.
PROVIDER_CHOICES: List[Tuple[str, str]] = [
    ("openai", "OpenAI-compatible chat completions"),
    ("ollama", "Ollama (local model)"),
]

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "ollama": "llava",
}

DEFAULT_BASE_URLS: Dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "ollama": "http://localhost:11434",
}

DEFAULT_API_KEYS = {
    "openai": "",
}

# Checked in order before the settings file.
API_KEY_ENV_VARS = ("DATASIGHT_API_KEY", "OPENAI_API_KEY")


def _default_settings() -> Dict[str, Any]:
    provider = PROVIDER_CHOICES[0][0]
    return {
        "provider": provider,
        "model": DEFAULT_MODELS[provider],
        "base_url": DEFAULT_BASE_URLS[provider],
        "api_keys": DEFAULT_API_KEYS.copy(),
        "request_timeout_seconds": DEFAULT_REQUEST_TIMEOUT_SECONDS,
        "rollback_failed_turns": False,
    }


def _normalize_provider(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    value = value.strip().lower()
    valid_ids = {identifier for identifier, _ in PROVIDER_CHOICES}
    return value if value in valid_ids else fallback


def _normalize_timeout(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        return fallback
    return timeout if timeout > 0 else fallback


def _sanitize_api_keys(api_keys: Any) -> Dict[str, str]:
    sanitized = DEFAULT_API_KEYS.copy()
    if isinstance(api_keys, dict):
        for key in sanitized.keys():
            value = api_keys.get(key)
            if isinstance(value, str):
                sanitized[key] = value.strip()
    return sanitized


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    settings = _default_settings()

    provider = _normalize_provider(data.get("provider"), settings["provider"])
    settings["provider"] = provider

    model = data.get("model")
    settings["model"] = model.strip() if isinstance(model, str) and model.strip() else DEFAULT_MODELS[provider]

    base_url = data.get("base_url")
    if isinstance(base_url, str) and base_url.strip():
        settings["base_url"] = base_url.strip().rstrip("/")
    else:
        settings["base_url"] = DEFAULT_BASE_URLS[provider]

    settings["api_keys"] = _sanitize_api_keys(data.get("api_keys"))
    settings["request_timeout_seconds"] = _normalize_timeout(
        data.get("request_timeout_seconds"),
        settings["request_timeout_seconds"],
    )

    rollback = data.get("rollback_failed_turns")
    if rollback is not None:
        settings["rollback_failed_turns"] = bool(rollback)
    return settings


def load_user_settings() -> Dict[str, Any]:
    """
    Load user settings from disk, normalized over the defaults.
    """
    if not SETTINGS_FILE.exists():
        return _default_settings()

    try:
        with open(SETTINGS_FILE, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (IOError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read user settings from %s: %s", SETTINGS_FILE, exc)
        return _default_settings()

    if not isinstance(data, dict):
        logger.warning("User settings file %s does not contain a JSON object.", SETTINGS_FILE)
        return _default_settings()

    return _normalize(data)


def save_user_settings(settings: Dict[str, Any]) -> None:
    """
    Persist the normalized settings payload to disk.
    """
    payload = _normalize(settings)

    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_FILE, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=4)

    logger.info("User settings saved to %s", SETTINGS_FILE)


def update_llm_settings(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge and persist completion-backend updates.

    Switching provider without naming a model or base URL resets both to the
    new provider's defaults.
    """
    settings = load_user_settings()
    if "provider" in updates:
        provider = _normalize_provider(updates.get("provider"), settings["provider"])
        if provider != settings["provider"]:
            settings["model"] = DEFAULT_MODELS[provider]
            settings["base_url"] = DEFAULT_BASE_URLS[provider]
        settings["provider"] = provider
    for key in ("model", "base_url", "request_timeout_seconds", "rollback_failed_turns"):
        if key in updates:
            settings[key] = updates[key]
    if "api_keys" in updates:
        settings["api_keys"] = _sanitize_api_keys(updates.get("api_keys"))

    save_user_settings(settings)
    return load_user_settings()


def resolve_api_key(settings: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """
    Resolve the API key for the hosted completion service.

    Environment variables take precedence over the settings file.
    """
    for env_var in API_KEY_ENV_VARS:
        api_key = os.getenv(env_var)
        if api_key and api_key.strip():
            logger.debug("Using API key from %s environment variable", env_var)
            return api_key.strip()

    if settings is None:
        settings = load_user_settings()
    api_key = (settings.get("api_keys") or {}).get("openai")
    if isinstance(api_key, str) and api_key.strip():
        return api_key.strip()
    return None

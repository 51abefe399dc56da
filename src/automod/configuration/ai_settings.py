import os
from typing import Any, Dict

API_KEY_ENV_VAR = "AUTOMOD_AI_API_KEY"


class AISettings:
    """Typed accessors for the optional AI content classifier.

    Exposes ``get``/``as_dict`` plus properties for the fields the engine
    reads. The API key falls back to the ``AUTOMOD_AI_API_KEY`` environment
    variable so it can stay out of the YAML file.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    @property
    def enabled(self) -> bool:
        return bool(self.data.get("enabled", False))

    @property
    def base_url(self) -> str | None:
        val = self.data.get("base_url")
        return str(val) if val else None

    @property
    def api_key(self) -> str | None:
        val = self.data.get("api_key") or os.getenv(API_KEY_ENV_VAR)
        return str(val) if val else None

    @property
    def model_name(self) -> str | None:
        val = self.data.get("model_name")
        return str(val) if val else None

    @property
    def confidence_threshold(self) -> float:
        return float(self.data.get("confidence_threshold", 0.8))

    @property
    def cache_ttl_seconds(self) -> float:
        return float(self.data.get("cache_ttl_seconds", 300))

    @property
    def request_timeout_seconds(self) -> float:
        return float(self.data.get("request_timeout_seconds", 10))

    @property
    def min_content_length(self) -> int:
        return int(self.data.get("min_content_length", 5))

    @property
    def auto_delete(self) -> bool:
        return bool(self.data.get("auto_delete", False))

    @property
    def send_educational_message(self) -> bool:
        return bool(self.data.get("send_educational_message", False))

    @property
    def warn_on_violation(self) -> bool:
        return bool(self.data.get("warn_on_violation", False))

from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    value = int(raw)
    return value if value > 0 else None


def _csv(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Environment-driven settings for the relay and its collaborators."""

    def __init__(self) -> None:
        self.app_name: str = os.getenv("APP_NAME", "AskMyCampus")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins: List[str] = _csv("CORS_ORIGINS", "*")

        # inference
        self.llm_backend: str = os.getenv("LLM_BACKEND", "gemini").strip().lower()
        self.gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip()
        self.ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.2:3b").strip()
        self.ollama_path: str = os.getenv("OLLAMA_PATH", "ollama").strip()

        # history storage
        self.store_backend: str = os.getenv("STORE_BACKEND", "memory").strip().lower()
        self.redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.history_key_prefix: str = os.getenv("HISTORY_KEY_PREFIX", "")
        self.history_ttl_seconds: Optional[int] = _optional_int("HISTORY_TTL_SECONDS")

        # unset means the whole history is replayed into every prompt
        self.prompt_history_window: Optional[int] = _optional_int("PROMPT_HISTORY_WINDOW")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

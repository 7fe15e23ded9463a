"""
AI provider configuration, passed explicitly to the narrative layer.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env")

PROVIDER_GEMINI = "GEMINI"
PROVIDER_DEEPSEEK = "DEEPSEEK"

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_DEEPSEEK_MODEL = "deepseek-reasoner"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
DEEPSEEK_BASE_URL = "https://api.deepseek.com"

MODEL_TEMPERATURES = {
    # Gemini - works best with moderate temperature for creative tasks
    "gemini-2.0-flash": 0.8,
    "gemini-1.5-pro": 0.7,
    "gemini-1.5-flash": 0.8,
    # DeepSeek - recommended temperature for creative/analytical tasks
    "deepseek-chat": 0.7,
    "deepseek-reasoner": 0.6,
}

_TRAILING_V1_RE = re.compile(r'/v1/?$')


def get_optimal_temperature(model: str) -> float:
    """Get the optimal temperature for a given model."""
    return MODEL_TEMPERATURES.get(model, 0.7)


def normalize_base_url(base_url: str) -> str:
    """Strip a trailing /v1 and slash so the client can append its own path."""
    return _TRAILING_V1_RE.sub('', base_url.strip()).rstrip('/')


@dataclass(frozen=True)
class AIConfig:
    provider: str = PROVIDER_GEMINI
    api_key: str = ""
    base_url: str = GEMINI_BASE_URL
    model: str = DEFAULT_GEMINI_MODEL
    temperature: float = 0.8

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != "replace_me"

    @classmethod
    def for_provider(cls, provider: str, api_key: str = "", model: str = None, base_url: str = None) -> "AIConfig":
        provider = (provider or PROVIDER_GEMINI).upper()
        if provider == PROVIDER_DEEPSEEK:
            model = model or DEFAULT_DEEPSEEK_MODEL
            base_url = normalize_base_url(base_url or DEEPSEEK_BASE_URL)
        else:
            provider = PROVIDER_GEMINI
            # DeepSeek 模型名不能发给 Gemini
            if not model or "deepseek" in model:
                model = DEFAULT_GEMINI_MODEL
            base_url = base_url or GEMINI_BASE_URL
        return cls(
            provider=provider,
            api_key=api_key or "",
            base_url=base_url,
            model=model,
            temperature=get_optimal_temperature(model),
        )

    @classmethod
    def from_env(cls) -> "AIConfig":
        provider = os.getenv("AI_PROVIDER", PROVIDER_GEMINI).upper()
        key_var = "DEEPSEEK_API_KEY" if provider == PROVIDER_DEEPSEEK else "GEMINI_API_KEY"
        return cls.for_provider(
            provider,
            api_key=os.getenv(key_var, ""),
            model=os.getenv("AI_MODEL") or None,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )

    def with_model(self, model: str) -> "AIConfig":
        return replace(self, model=model, temperature=get_optimal_temperature(model))

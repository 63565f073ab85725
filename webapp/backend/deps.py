"""
Configuration helpers for the medquery web backend.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from medquery.config import (
    DEFAULT_BASE_URL,
    DEFAULT_PHASE_INTERVAL,
    DEFAULT_TEXT_MODEL,
    DEFAULT_VISION_MODEL,
    apply_runtime_config,
    env_bool,
)
from medquery.engine import QueryEngine
from medquery.transport import LLMClient


@dataclass(frozen=True)
class Settings:
    """Runtime configuration pulled from environment variables."""

    llm_api_key: Optional[str] = None
    text_url: str = DEFAULT_BASE_URL
    vision_url: Optional[str] = None
    text_model: str = DEFAULT_TEXT_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    temperature: float = 0.7
    json_mode: bool = True
    vision_json_mode: bool = False
    request_timeout: int = 120
    max_retries: int = 0
    phase_interval: float = DEFAULT_PHASE_INTERVAL

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            llm_api_key=os.getenv("LLM_API_KEY"),
            text_url=os.getenv("LLM_TEXT_URL", DEFAULT_BASE_URL),
            vision_url=os.getenv("LLM_VISION_URL"),
            text_model=os.getenv("LLM_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            vision_model=os.getenv("LLM_VISION_MODEL", DEFAULT_VISION_MODEL),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            json_mode=env_bool("LLM_JSON_MODE", True),
            vision_json_mode=env_bool("LLM_VISION_JSON_MODE", False),
            request_timeout=int(os.getenv("LLM_REQUEST_TIMEOUT", "120")),
            max_retries=int(os.getenv("LLM_MAX_RETRIES", "0")),
            phase_interval=float(os.getenv("MEDQUERY_PHASE_INTERVAL", str(DEFAULT_PHASE_INTERVAL))),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached settings instance.

    The optional JSON config file is projected into the environment first,
    then settings are read once per process.
    """

    apply_runtime_config()
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_engine() -> QueryEngine:
    settings = get_settings()
    if not settings.llm_api_key:
        raise ValueError("缺少 LLM_API_KEY，无法调用模型。")
    client = LLMClient(
        api_key=settings.llm_api_key,
        text_url=settings.text_url,
        vision_url=settings.vision_url,
        text_model=settings.text_model,
        vision_model=settings.vision_model,
        temperature=settings.temperature,
        json_mode=settings.json_mode,
        vision_json_mode=settings.vision_json_mode,
        request_timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )
    return QueryEngine(client, phase_interval=settings.phase_interval)

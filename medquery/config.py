import json
import os
from pathlib import Path
from typing import Any, Dict


DEFAULT_CONFIG_PATH = Path(os.getenv("MEDQUERY_CONFIG", "config/medquery_config.json"))

DEFAULT_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"
DEFAULT_TEXT_MODEL = "qwen-plus"
DEFAULT_VISION_MODEL = "qwen-vl-max"
DEFAULT_PHASE_INTERVAL = 1.2


def load_runtime_config(path: str | os.PathLike | None = None) -> Dict[str, Any]:
    """Load JSON config if it exists, otherwise return empty dict."""
    cfg_path = Path(path or DEFAULT_CONFIG_PATH)
    if not cfg_path.exists():
        return {}
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            if not isinstance(data, dict):
                return {}
            return data
    except (OSError, json.JSONDecodeError):
        return {}


def _flag(value) -> str:
    return "1" if value else "0"


def apply_runtime_config(path: str | os.PathLike | None = None) -> None:
    """
    Apply runtime settings by setting environment variables.
    Existing env vars take precedence.
    """

    config = load_runtime_config(path)
    if not config:
        return

    runtime = config.get("runtime", {})
    runtime_mapping = {
        "debug": ("MEDQUERY_DEBUG", _flag),
        "log_file": ("MEDQUERY_LOG_FILE", str),
        "phase_interval": ("MEDQUERY_PHASE_INTERVAL", str),
    }
    for key, (env_var, formatter) in runtime_mapping.items():
        if env_var in os.environ:
            continue
        if key in runtime and runtime[key] is not None:
            os.environ[env_var] = formatter(runtime[key])

    llm_cfg = config.get("llm", {})
    llm_mapping = {
        "api_key": ("LLM_API_KEY", str),
        "text_url": ("LLM_TEXT_URL", str),
        "vision_url": ("LLM_VISION_URL", str),
        "text_model": ("LLM_TEXT_MODEL", str),
        "vision_model": ("LLM_VISION_MODEL", str),
        "temperature": ("LLM_TEMPERATURE", str),
        "json_mode": ("LLM_JSON_MODE", _flag),
        "vision_json_mode": ("LLM_VISION_JSON_MODE", _flag),
        "request_timeout": ("LLM_REQUEST_TIMEOUT", str),
        "max_retries": ("LLM_MAX_RETRIES", str),
        "retry_backoff": ("LLM_RETRY_BACKOFF", str),
    }
    for key, (env_var, formatter) in llm_mapping.items():
        if env_var in os.environ:
            continue
        value = llm_cfg.get(key)
        if value is not None and value != "":
            os.environ[env_var] = formatter(value)


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def phase_interval_from_env() -> float:
    return float(os.getenv("MEDQUERY_PHASE_INTERVAL", str(DEFAULT_PHASE_INTERVAL)))

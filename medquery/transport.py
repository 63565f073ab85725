import os
import random
import time

import requests
import tiktoken

from .config import DEFAULT_BASE_URL, DEFAULT_TEXT_MODEL, DEFAULT_VISION_MODEL, env_bool
from .errors import MalformedResponseError, NetworkError, ProviderError
from .prompts import PromptSpec
from .records import QueryRequest
from .utils import image_to_data_uri, logger, truncate


def normalize_content(content) -> str:
    """
    Flatten a provider message content into plain text. Vision models may
    answer with a list of parts instead of a string.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
        return "".join(texts)
    return str(content)


def _first_message_content(body) -> str:
    if not isinstance(body, dict):
        raise MalformedResponseError("provider body is not a JSON object")
    choices = body.get("choices")
    if choices is None and isinstance(body.get("output"), dict):
        # DashScope native layout
        choices = body["output"].get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponseError("provider body has no choices")
    choice = choices[0]
    if not isinstance(choice, dict):
        raise MalformedResponseError("provider choice is not an object")
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        raise MalformedResponseError("provider message is not an object")
    return normalize_content(message.get("content"))


# ======================= LLM Client =======================
class LLMClient:
    def __init__(
        self,
        api_key,
        text_url=DEFAULT_BASE_URL,
        vision_url=None,
        text_model=DEFAULT_TEXT_MODEL,
        vision_model=DEFAULT_VISION_MODEL,
        temperature=0.7,
        json_mode=True,
        vision_json_mode=False,
        request_timeout=120,
        max_retries=0,
        retry_backoff=2.0,
        session=None,
    ):
        self.api_key = api_key
        self.text_url = text_url
        self.vision_url = vision_url or text_url
        self.text_model = text_model
        self.vision_model = vision_model
        self.temperature = temperature
        self.json_mode = json_mode
        self.vision_json_mode = vision_json_mode
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.session = session or requests.Session()
        self.total_tokens_used = 0
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        self._encoder = None

    @classmethod
    def from_env(cls, **overrides):
        params = {
            "api_key": os.getenv("LLM_API_KEY"),
            "text_url": os.getenv("LLM_TEXT_URL", DEFAULT_BASE_URL),
            "vision_url": os.getenv("LLM_VISION_URL"),
            "text_model": os.getenv("LLM_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            "vision_model": os.getenv("LLM_VISION_MODEL", DEFAULT_VISION_MODEL),
            "temperature": float(os.getenv("LLM_TEMPERATURE", "0.7")),
            "json_mode": env_bool("LLM_JSON_MODE", True),
            "vision_json_mode": env_bool("LLM_VISION_JSON_MODE", False),
            "request_timeout": int(os.getenv("LLM_REQUEST_TIMEOUT", "120")),
            "max_retries": int(os.getenv("LLM_MAX_RETRIES", "0")),
            "retry_backoff": float(os.getenv("LLM_RETRY_BACKOFF", "2")),
        }
        params.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**params)

    @property
    def encoder(self):
        """tiktoken encoder for usage estimates, or None when it cannot be loaded."""
        if self._encoder is None:
            try:
                try:
                    self._encoder = tiktoken.encoding_for_model(self.text_model)
                except KeyError:
                    self._encoder = tiktoken.get_encoding("cl100k_base")
            except (ValueError, OSError, requests.RequestException) as exc:
                # BPE files are fetched on first use; no network means no estimate
                logger.log(f"[WARN] Token estimate disabled: {exc}", once=True)
                self._encoder = False
        return self._encoder or None

    def _estimate_tokens(self, messages) -> int:
        encoder = self.encoder
        if encoder is None:
            return 0
        total = 0
        for m in messages:
            text = normalize_content(m.get("content"))
            if text:
                total += len(encoder.encode(text))
        return total

    def send(self, spec: PromptSpec, request: QueryRequest) -> str:
        """
        Issue exactly one completion for a structured query and return the
        reply text. The vision endpoint is chosen iff the request carries an image.
        """
        use_vision = request.has_image
        image_uri = image_to_data_uri(request.image) if use_vision else None
        messages = spec.messages(request.text, image_uri)
        payload = {
            "model": self.vision_model if use_vision else self.text_model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if (self.vision_json_mode if use_vision else self.json_mode):
            payload["response_format"] = {"type": "json_object"}
        url = self.vision_url if use_vision else self.text_url
        logger.debug(f"[SEND] mode={spec.mode.value} lang={spec.language.value} vision={use_vision} model={payload['model']}")
        return self._post(url, payload)

    def chat(self, system_message: str, user_message: str) -> str:
        """Free-form prose completion on the text path."""
        payload = {
            "model": self.text_model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
            "temperature": self.temperature,
        }
        return self._post(self.text_url, payload)

    def _post(self, url, payload) -> str:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._post_once(url, payload)
            except (NetworkError, ProviderError) as exc:
                retryable = isinstance(exc, NetworkError) or exc.status >= 500
                if not retryable or attempt == attempts:
                    raise
                logger.log(f"[WARN] LLM request failed (attempt {attempt}/{attempts}): {exc}")
                backoff = self.retry_backoff**attempt
                time.sleep(backoff * random.uniform(0.5, 1.5))

    def _post_once(self, url, payload) -> str:
        try:
            resp = self.session.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.request_timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(str(exc)) from exc

        if not 200 <= resp.status_code < 300:
            detail = ""
            try:
                body = resp.json()
                if isinstance(body, dict):
                    err = body.get("error")
                    detail = (err.get("message") if isinstance(err, dict) else None) or body.get("message") or ""
            except ValueError:
                detail = truncate(resp.text or "", 200)
            raise ProviderError(resp.status_code, detail)

        try:
            result = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("provider body is not valid JSON") from exc

        content = _first_message_content(result)
        usage = result.get("usage")
        total = usage.get("total_tokens") if isinstance(usage, dict) else None
        if isinstance(total, int) and not isinstance(total, bool):
            self.total_tokens_used += total
        else:
            self.total_tokens_used += self._estimate_tokens(payload["messages"] + [{"content": content}])
        logger.debug(f"[RECV] tokens_total={self.total_tokens_used} content={truncate(content, 200)!r}")
        return content

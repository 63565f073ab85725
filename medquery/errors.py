"""
Error taxonomy for a single query or follow-up call.

Every failure crosses component boundaries as one of these types. Only the
UI edges (CLI, HTTP) turn them into localized text via ``describe_error``.
"""

from __future__ import annotations

from typing import Optional


class QueryError(Exception):
    code = "query_error"


class TransportError(QueryError):
    code = "transport_error"


class NetworkError(TransportError):
    """No response reached us: connection failure or timeout."""

    code = "network_error"


class ProviderError(TransportError):
    """The provider answered with a non-2xx status."""

    code = "provider_error"

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"provider returned HTTP {status}" + (f": {message}" if message else ""))


class MalformedResponseError(QueryError):
    """No JSON object could be recovered from the reply."""

    code = "malformed_response"


class ValidationError(QueryError):
    code = "validation_error"

    def __init__(self, field: str, reason: str = "missing or empty"):
        self.field = field
        self.reason = reason
        super().__init__(f"invalid field '{field}': {reason}")


class UnrecognizedSubjectError(QueryError):
    """The model explicitly answered with the 'unrecognized' sentinel."""

    code = "unrecognized_subject"


class AnswerUnavailableError(QueryError):
    """A follow-up question could not be answered; history was left untouched."""

    code = "answer_unavailable"

    def __init__(self, fallback: str, cause: Optional[BaseException] = None):
        self.fallback = fallback
        self.cause = cause
        super().__init__(fallback)


_MESSAGES = {
    "zh": {
        "network_error": "网络请求失败。请检查网络连接。",
        "provider_error": "AI 服务暂时不可用（HTTP {status}），请稍后重试。",
        "malformed_response": "AI 返回的数据格式有误，请重试。",
        "validation_error": "AI 返回的数据不完整（字段：{field}），请重试。",
        "unrecognized_subject": "无法识别该药品，请确保图片清晰或名称正确。",
        "answer_unavailable": "抱歉，我现在无法回答这个问题。",
        "query_error": "请求失败，请重试。",
    },
    "en": {
        "network_error": "Network request failed. Please check your connection.",
        "provider_error": "The AI service is unavailable right now (HTTP {status}). Please try again later.",
        "malformed_response": "The AI response could not be read. Please try again.",
        "validation_error": "The AI response was incomplete (field: {field}). Please try again.",
        "unrecognized_subject": "The medication could not be recognized. Make sure the photo is clear or the name is correct.",
        "answer_unavailable": "Sorry, I'm unable to answer right now.",
        "query_error": "The request failed. Please try again.",
    },
}


def describe_error(exc: QueryError, language="zh") -> str:
    """Render a typed error as a user-facing message in the given language."""
    lang = getattr(language, "value", language)
    table = _MESSAGES.get(lang, _MESSAGES["en"])
    template = table.get(getattr(exc, "code", "query_error"), table["query_error"])
    return template.format(
        status=getattr(exc, "status", ""),
        field=getattr(exc, "field", ""),
    )

import json
import re

from .errors import MalformedResponseError


PAT_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", flags=re.S | re.I)


def _fenced(s: str):
    m = PAT_FENCE.search(s)
    return m.group(1).strip() if m else None


def _braced(s: str):
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end <= start:
        return None
    return s[start : end + 1]


def _parses_as_object(candidate) -> bool:
    if not candidate:
        return False
    try:
        return isinstance(json.loads(candidate), dict)
    except ValueError:
        return False


def extract(raw: str) -> str:
    """
    Recover the JSON object text from a free-form model reply.

    A fenced block is preferred when present, otherwise the span from the
    first '{' to the last '}'. If the first choice does not parse, the other
    strategy is tried once. Only syntax is checked here.
    """
    if not raw:
        raise MalformedResponseError("empty reply")

    fenced = _fenced(raw)
    strategies = (_fenced, _braced) if fenced is not None else (_braced, _fenced)
    for strategy in strategies:
        candidate = strategy(raw)
        if _parses_as_object(candidate):
            return candidate
    raise MalformedResponseError("no parseable JSON object in reply")


def extract_json(raw: str) -> dict:
    return json.loads(extract(raw))

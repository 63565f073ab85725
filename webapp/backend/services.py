"""
Service layer that bridges the FastAPI endpoints with the query engine.
"""

from __future__ import annotations

import binascii
import time
from typing import Dict

from medquery.conversation import ConversationContext, Turn
from medquery.engine import QueryEngine
from medquery.records import QueryMode, QueryRequest, record_to_dict
from medquery.utils import decode_base64_image
from medquery.validator import validate

from .schemas import AskBody, QueryBody


def _decode_image(body: QueryBody):
    if not body.image_base64:
        return None
    try:
        return decode_base64_image(body.image_base64)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image_base64 is not valid base64") from exc


def run_query(engine: QueryEngine, mode: QueryMode, body: QueryBody) -> Dict:
    """
    Run one drug or triage query and return the record in wire form.
    """

    request = QueryRequest(
        mode=mode,
        text=body.text,
        image=_decode_image(body),
        language=body.language,
    )
    started = time.perf_counter()
    record = engine.run(request)
    payload = record_to_dict(record)
    payload["runtime_seconds"] = time.perf_counter() - started
    return payload


def run_ask(engine: QueryEngine, body: AskBody) -> Dict:
    """
    Answer one follow-up question. The server holds no conversation state:
    the client sends the seed record and prior turns each time.
    """

    seed = validate(body.record, body.mode, body.language)
    context = ConversationContext(
        seed_record=seed,
        language=body.language,
        turns=[Turn(t.role, t.text) for t in body.turns],
    )
    answer = engine.ask(context, body.question)
    return {
        "answer": answer,
        "turns": [{"role": t.role, "text": t.text} for t in context.turns],
    }

"""
FastAPI application exposing the medquery engine over HTTP.
"""

from __future__ import annotations

import logging

from anyio import to_thread
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from medquery.errors import (
    AnswerUnavailableError,
    MalformedResponseError,
    NetworkError,
    ProviderError,
    QueryError,
    UnrecognizedSubjectError,
    ValidationError,
    describe_error,
)
from medquery.engine import QueryEngine
from medquery.phases import phase_labels
from medquery.records import Language, QueryMode

from .deps import Settings, get_engine, get_settings
from .schemas import AskBody, AskResponse, PhasesResponse, QueryBody
from .services import run_ask, run_query

logger = logging.getLogger(__name__)

app = FastAPI(
    title="medquery Web API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Allow local frontend development by default.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = (
    (UnrecognizedSubjectError, 404),
    (ValidationError, 422),
    (MalformedResponseError, 502),
    (ProviderError, 502),
    (NetworkError, 504),
    (AnswerUnavailableError, 503),
)


def _http_error(exc: QueryError, language: Language) -> HTTPException:
    status = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    detail = {"code": exc.code, "message": describe_error(exc, language)}
    if isinstance(exc, ValidationError):
        detail["field"] = exc.field
    if isinstance(exc, ProviderError):
        detail["status"] = exc.status
    return HTTPException(status_code=status, detail=detail)


async def _call(func, *args, language: Language):
    try:
        return await to_thread.run_sync(func, *args)
    except QueryError as exc:
        logger.warning("Query failed: %s: %s", type(exc).__name__, exc)
        raise _http_error(exc, language) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "bad_request", "message": str(exc)}) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to run query")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


def provide_engine() -> QueryEngine:
    try:
        return get_engine()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail={"code": "not_configured", "message": str(exc)}) from exc


@app.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "ok",
        "text_model": settings.text_model,
        "vision_model": settings.vision_model,
        "api_key_configured": bool(settings.llm_api_key),
    }


@app.post("/drug")
async def identify_drug(body: QueryBody, engine: QueryEngine = Depends(provide_engine)) -> dict:
    return await _call(run_query, engine, QueryMode.DRUG_IDENTIFY, body, language=body.language)


@app.post("/triage")
async def triage_symptoms(body: QueryBody, engine: QueryEngine = Depends(provide_engine)) -> dict:
    return await _call(run_query, engine, QueryMode.SYMPTOM_TRIAGE, body, language=body.language)


@app.post("/ask", response_model=AskResponse)
async def ask(body: AskBody, engine: QueryEngine = Depends(provide_engine)) -> AskResponse:
    result = await _call(run_ask, engine, body, language=body.language)
    return AskResponse(**result)


@app.get("/phases/{mode}", response_model=PhasesResponse)
async def loading_phases(
    mode: QueryMode,
    language: Language = Query(Language.ZH),
    settings: Settings = Depends(get_settings),
) -> PhasesResponse:
    return PhasesResponse(
        mode=mode,
        language=language,
        labels=list(phase_labels(mode, language)),
        interval_seconds=settings.phase_interval,
    )

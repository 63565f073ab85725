"""
Caller-facing query API: prompt -> transport -> extraction -> validation.
"""

from __future__ import annotations

import json
from typing import Optional, Union

from .conversation import ConversationContext, ConversationManager
from .extractor import extract
from .phases import PhaseHandle, start_loading_phases, stop_loading_phases
from .prompts import build_prompt
from .records import DrugRecord, Language, QueryMode, QueryRequest, TriageRecord
from .transport import LLMClient
from .utils import logger, truncate
from .validator import validate


class QueryEngine:
    def __init__(self, client: LLMClient, phase_interval: Optional[float] = None):
        self.client = client
        self.phase_interval = phase_interval
        self.conversations = ConversationManager(client)

    @classmethod
    def from_env(cls, **client_overrides) -> "QueryEngine":
        return cls(LLMClient.from_env(**client_overrides))

    def run(self, request: QueryRequest) -> Union[DrugRecord, TriageRecord]:
        """
        Execute one query end to end. Any failure is raised as a typed
        ``QueryError``; no partial record is ever returned.
        """
        request.check()
        spec = build_prompt(request.mode, request.language, request.has_image)
        raw = self.client.send(spec, request)
        logger.debug(f"LLM raw response: {truncate(raw)}")

        candidate = extract(raw)
        record = validate(json.loads(candidate), request.mode, request.language)
        logger.log(f"[{request.mode.value}] query settled ({'image' if request.has_image else 'text'})")
        return record

    def identify_drug(
        self,
        text: Optional[str] = None,
        image: Optional[bytes] = None,
        language: Language = Language.ZH,
    ) -> DrugRecord:
        return self.run(QueryRequest(QueryMode.DRUG_IDENTIFY, text, image, Language(language)))

    def triage_symptoms(
        self,
        text: Optional[str] = None,
        image: Optional[bytes] = None,
        language: Language = Language.ZH,
    ) -> TriageRecord:
        return self.run(QueryRequest(QueryMode.SYMPTOM_TRIAGE, text, image, Language(language)))

    def start_conversation(self, record, language: Language = Language.ZH) -> ConversationContext:
        return ConversationContext(seed_record=record, language=Language(language))

    def ask(self, context: ConversationContext, question: str) -> str:
        return self.conversations.ask(context, question)

    def start_loading_phases(self, mode: QueryMode, language: Language) -> PhaseHandle:
        return start_loading_phases(mode, language, self.phase_interval)

    def stop_loading_phases(self, handle: PhaseHandle) -> None:
        stop_loading_phases(handle)

"""
Follow-up chat about a result that was already returned.

The provider keeps no session, so every question is sent together with the
full serialized seed record. Answers are plain prose and are not validated.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Literal, Union

from .errors import AnswerUnavailableError, MalformedResponseError, TransportError, describe_error
from .records import DrugRecord, Language, QueryMode, TriageRecord, record_to_dict
from .utils import logger, truncate

Role = Literal["user", "assistant"]

_SYSTEM_PROMPT = {
    Language.ZH: "你是一位友善、专业的医疗助手。请根据提供的JSON上下文回答追问。回答要简洁（100字以内），安抚用户情绪。请使用简体中文回答。",
    Language.EN: "You are a friendly, professional medical assistant. Answer based on the JSON context. Keep it concise (under 100 words) and reassuring. Answer in English.",
}

SUGGESTED_QUESTIONS = {
    (QueryMode.DRUG_IDENTIFY, Language.ZH): ["这个药可以和其他药一起吃吗？", "孕妇或哺乳期可以用吗？"],
    (QueryMode.DRUG_IDENTIFY, Language.EN): ["Can I take this with other medications?", "Is it safe during pregnancy or breastfeeding?"],
    (QueryMode.SYMPTOM_TRIAGE, Language.ZH): ["我需要马上去医院吗？", "在家可以怎么缓解？"],
    (QueryMode.SYMPTOM_TRIAGE, Language.EN): ["Do I need to see a doctor right away?", "How can I relieve this at home?"],
}


@dataclass
class Turn:
    role: Role
    text: str


@dataclass
class ConversationContext:
    seed_record: Union[DrugRecord, TriageRecord]
    language: Language = Language.ZH
    turns: List[Turn] = field(default_factory=list)

    @property
    def mode(self) -> QueryMode:
        if isinstance(self.seed_record, DrugRecord):
            return QueryMode.DRUG_IDENTIFY
        return QueryMode.SYMPTOM_TRIAGE

    def serialized_seed(self) -> str:
        return json.dumps(record_to_dict(self.seed_record), ensure_ascii=False)


def suggested_questions(mode: QueryMode, language: Language) -> List[str]:
    return list(SUGGESTED_QUESTIONS[(QueryMode(mode), Language(language))])


class ConversationManager:
    """
    Not reentrant: callers must not issue a second ``ask`` on the same
    context before the first returns.
    """

    def __init__(self, client):
        self.client = client

    def ask(self, context: ConversationContext, question: str) -> str:
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        language = Language(context.language)
        user_message = f"Context JSON:\n{context.serialized_seed()}\n\nUser Question: {question}"
        try:
            answer = self.client.chat(_SYSTEM_PROMPT[language], user_message)
        except (TransportError, MalformedResponseError) as exc:
            logger.log(f"[WARN] Follow-up question failed: {exc}")
            fallback = describe_error(AnswerUnavailableError(""), language)
            raise AnswerUnavailableError(fallback, exc) from exc
        if not answer or not answer.strip():
            logger.log("[WARN] Follow-up question got an empty answer")
            raise AnswerUnavailableError(describe_error(AnswerUnavailableError(""), language))

        logger.debug(f"[ASK] q={truncate(question, 80)!r} a={truncate(answer, 120)!r}")
        context.turns.append(Turn("user", question))
        context.turns.append(Turn("assistant", answer))
        return answer

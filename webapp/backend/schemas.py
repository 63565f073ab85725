"""
Pydantic models for request and response payloads.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from medquery.records import Language, QueryMode


class QueryBody(BaseModel):
    text: Optional[str] = Field(None, description="Drug name, or free-text symptom description.")
    image_base64: Optional[str] = Field(None, description="Base64 image or data URI.")
    language: Language = Language.ZH

    class Config:
        json_schema_extra = {
            "example": {
                "text": "布洛芬",
                "language": "zh",
            }
        }


class TurnModel(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class AskBody(BaseModel):
    mode: QueryMode
    language: Language = Language.ZH
    record: Dict[str, Any] = Field(..., description="The record returned by /drug or /triage.")
    turns: List[TurnModel] = Field(default_factory=list)
    question: str

    class Config:
        json_schema_extra = {
            "example": {
                "mode": "drug",
                "language": "zh",
                "record": {"name": "布洛芬", "...": "..."},
                "turns": [],
                "question": "这个药可以和其他药一起吃吗？",
            }
        }


class AskResponse(BaseModel):
    answer: str
    turns: List[TurnModel]


class PhasesResponse(BaseModel):
    mode: QueryMode
    language: Language
    labels: List[str]
    interval_seconds: float

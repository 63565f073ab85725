"""
Query inputs and the two validated result records.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class Language(str, Enum):
    ZH = "zh"
    EN = "en"


class QueryMode(str, Enum):
    DRUG_IDENTIFY = "drug"
    SYMPTOM_TRIAGE = "triage"


@dataclass
class QueryRequest:
    mode: QueryMode
    text: Optional[str] = None
    image: Optional[bytes] = None
    language: Language = Language.ZH

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    def check(self) -> None:
        if self.mode == QueryMode.DRUG_IDENTIFY:
            if self.has_text == self.has_image:
                raise ValueError("drug identification needs exactly one of a name or an image")
        elif not (self.has_text or self.has_image):
            raise ValueError("symptom triage needs a description, an image, or both")


class DrugRecord(BaseModel):
    name: str
    indications: str
    dosage: str
    contraindications: str
    storage: str
    side_effects: str = Field(..., alias="sideEffects")
    usage_tips: str
    summary: str
    is_high_risk: bool = Field(False, alias="isHighRisk")
    risk_reason: str = Field("", alias="riskReason")

    class Config:
        populate_by_name = True


class ConditionAssessment(BaseModel):
    name: str
    probability: str
    explanation: str
    medications: List[str] = Field(default_factory=list)
    treatments: List[str] = Field(default_factory=list)


Urgency = Literal["Low", "Medium", "High"]


class TriageRecord(BaseModel):
    urgency: Urgency
    urgency_reason: str
    summary: str
    conditions: List[ConditionAssessment] = Field(..., alias="potential_conditions")
    lifestyle_advice: str

    class Config:
        populate_by_name = True


def record_to_dict(record: BaseModel) -> dict:
    """Wire form of a record, with the same keys the model was asked for."""
    return record.model_dump(by_alias=True)

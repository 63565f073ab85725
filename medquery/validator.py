"""
Schema validation of extracted model JSON into DrugRecord / TriageRecord.

Validation is a single all-or-nothing pass. Field names in errors use the
wire keys from the prompt's JSON shape (``potential_conditions[1].name``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .errors import UnrecognizedSubjectError, ValidationError
from .prompts import UNRECOGNIZED_SENTINELS
from .records import ConditionAssessment, DrugRecord, Language, QueryMode, TriageRecord

URGENCY_LEVELS = ("Low", "Medium", "High")

# wire key -> accepted spellings, first one wins
DRUG_FIELDS = {
    "name": ("name",),
    "indications": ("indications",),
    "dosage": ("dosage",),
    "contraindications": ("contraindications",),
    "storage": ("storage",),
    "sideEffects": ("sideEffects", "side_effects"),
    "usage_tips": ("usage_tips", "usageTips"),
    "summary": ("summary",),
}
TRIAGE_FIELDS = {
    "urgency_reason": ("urgency_reason", "urgencyReason"),
    "summary": ("summary",),
    "lifestyle_advice": ("lifestyle_advice", "lifestyleAdvice"),
}
CONDITION_FIELDS = ("name", "probability", "explanation")


def _lookup(payload: Dict[str, Any], keys: Sequence[str]):
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _required_str(payload, field, keys=None, prefix="") -> str:
    value = _lookup(payload, keys or (field,))
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(prefix + field)
    return value


def _str_list(payload, field, prefix="") -> List[str]:
    value = payload.get(field)
    if not isinstance(value, list):
        raise ValidationError(prefix + field, "must be a list")
    for i, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ValidationError(f"{prefix}{field}[{i}]")
    return value


def is_unrecognized(name: str) -> bool:
    lowered = name.casefold()
    return any(s.casefold() in lowered for s in UNRECOGNIZED_SENTINELS.values())


def _high_risk_flag(payload) -> bool:
    value = _lookup(payload, ("isHighRisk", "is_high_risk"))
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValidationError("isHighRisk", "must be a boolean")


def validate_drug(payload: Dict[str, Any]) -> DrugRecord:
    # sentinel wins over missing fields; models leave the rest blank when they give up.
    # Both languages are checked; models do not always answer in the requested one
    name = payload.get("name")
    if isinstance(name, str) and name.strip() and is_unrecognized(name):
        raise UnrecognizedSubjectError(name)
    values = {field: _required_str(payload, field, keys) for field, keys in DRUG_FIELDS.items()}

    reason = _lookup(payload, ("riskReason", "risk_reason"))
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("riskReason", "must be a string")
    values["isHighRisk"] = _high_risk_flag(payload)
    values["riskReason"] = reason or ""
    return DrugRecord(**values)


def _condition(item, index: int) -> ConditionAssessment:
    prefix = f"potential_conditions[{index}]."
    if not isinstance(item, dict):
        raise ValidationError(f"potential_conditions[{index}]", "must be an object")
    values = {field: _required_str(item, field, prefix=prefix) for field in CONDITION_FIELDS}
    values["medications"] = _str_list(item, "medications", prefix)
    values["treatments"] = _str_list(item, "treatments", prefix)
    return ConditionAssessment(**values)


def validate_triage(payload: Dict[str, Any]) -> TriageRecord:
    urgency = payload.get("urgency")
    if urgency not in URGENCY_LEVELS:
        raise ValidationError("urgency", f"must be one of {', '.join(URGENCY_LEVELS)}")
    values = {field: _required_str(payload, field, keys) for field, keys in TRIAGE_FIELDS.items()}

    raw_conditions = _lookup(payload, ("potential_conditions", "conditions"))
    if not isinstance(raw_conditions, list) or not raw_conditions:
        raise ValidationError("potential_conditions", "must be a non-empty list")
    conditions = [_condition(item, i) for i, item in enumerate(raw_conditions)]

    return TriageRecord(
        urgency=urgency,
        potential_conditions=conditions,
        **values,
    )


def validate(payload, mode: QueryMode, language: Language = Language.ZH):
    """
    Map extracted JSON onto the record for ``mode``. ``language`` is accepted
    for symmetry with the other stages; the sentinel check ignores it.
    """
    if not isinstance(payload, dict):
        raise ValidationError("$", "must be a JSON object")
    if QueryMode(mode) == QueryMode.DRUG_IDENTIFY:
        return validate_drug(payload)
    return validate_triage(payload)

"""
System prompts and message layout for drug identification and symptom triage.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional

from .records import Language, QueryMode


UNRECOGNIZED_SENTINELS = {
    Language.ZH: "未识别",
    Language.EN: "Unrecognized",
}

_LANGUAGE_RULE = {
    Language.ZH: "Output strictly in SIMPLIFIED CHINESE (简体中文). Every string value in the JSON must be written in Simplified Chinese.",
    Language.EN: "Output strictly in ENGLISH. Every string value in the JSON must be written in English.",
}

_DRUG_PROMPT = """You are a senior clinical pharmacist with 20 years of experience.
Analyze the input (a drug name, or a photo of a drug package, label or pill) and produce a detailed, professional drug guide as ONE JSON object.

CRITICAL SAFETY CHECK:
Decide whether this drug is "High Risk" / "High Alert" (e.g. antibiotics, opioids, anticoagulants, insulin, chemotherapy agents).
If yes, set "isHighRisk" to true and explain why in "riskReason"; otherwise set "isHighRisk" to false and "riskReason" to "".

JSON shape (all keys required):
{{
  "name": "Generic name (brand name) - English name",
  "indications": "Indications, as complete as possible",
  "dosage": "Dosage for adults, children and special populations",
  "contraindications": "Contraindications, including populations and conditions",
  "storage": "Storage conditions (temperature, light, humidity)",
  "sideEffects": "Common and rare adverse reactions",
  "usage_tips": "3-5 practical tips: alcohol, before or after meals, foods to avoid, what to do after a missed dose",
  "summary": "About 150 words, warm and easy to understand, suitable for reading aloud",
  "isHighRisk": true or false,
  "riskReason": "Short warning, or empty string"
}}

If you cannot identify the drug, set "name" to exactly "{sentinel}" and still return the JSON object.

{language_rule} Return ONLY the JSON object, without markdown formatting or commentary."""

_TRIAGE_PROMPT = """You are an experienced General Practitioner.
Perform a differential diagnosis based on the user's symptom description and/or photo, and return ONE JSON object.

List 2-3 entries in "potential_conditions", ranked from most to least plausible.
For each condition suggest over-the-counter medications and home treatments; use an empty list when none are appropriate.

"urgency" must be exactly one of "Low", "Medium", "High" (case-sensitive):
- "High": breathing difficulty, chest pain, uncontrolled high fever, severe pain, heavy bleeding or altered consciousness. The user should seek care now.
- "Medium": symptoms that are persistent, worsening or moderately limiting. The user should see a doctor within a few days.
- "Low": mild, self-limiting symptoms that can be managed at home.

JSON shape (all keys required):
{{
  "urgency": "Low | Medium | High",
  "urgency_reason": "Why this urgency level was chosen",
  "summary": "About 100 words",
  "potential_conditions": [
    {{
      "name": "Condition name",
      "probability": "High / Medium / Low",
      "explanation": "Reasoning",
      "medications": ["OTC medication"],
      "treatments": ["Home remedy"]
    }}
  ],
  "lifestyle_advice": "General advice"
}}

{language_rule} Return ONLY the JSON object."""

_IMAGE_INSTRUCTION = {
    (QueryMode.DRUG_IDENTIFY, Language.ZH): "请精准识别这张图片中的药品，提取所有文字信息，并按要求输出JSON。",
    (QueryMode.DRUG_IDENTIFY, Language.EN): "Identify the drug in this image, read all visible text, and output the JSON.",
    (QueryMode.SYMPTOM_TRIAGE, Language.ZH): "请结合图片和症状描述进行分析，并按要求输出JSON。",
    (QueryMode.SYMPTOM_TRIAGE, Language.EN): "Analyze the image together with the symptom description and output the JSON.",
}

_NO_TEXT = {
    Language.ZH: "无文字描述",
    Language.EN: "No text provided",
}


@dataclass(frozen=True)
class PromptSpec:
    mode: QueryMode
    language: Language
    has_image: bool
    system_instruction: str
    image_instruction: str = ""

    def messages(self, text: Optional[str] = None, image_uri: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        One system message followed by one user message. With an image the
        user message is multi-part: the inline image, then the instruction text.
        """
        system = {"role": "system", "content": self.system_instruction}
        body = user_text(self.mode, self.language, text, self.has_image)
        if not self.has_image:
            return [system, {"role": "user", "content": body}]
        if image_uri is None:
            raise ValueError("image prompt requires image data")
        parts = [
            {"type": "image_url", "image_url": {"url": image_uri}},
            {"type": "text", "text": f"{self.image_instruction}\n{body}" if body else self.image_instruction},
        ]
        return [system, {"role": "user", "content": parts}]


def user_text(mode: QueryMode, language: Language, text: Optional[str], has_image: bool = False) -> str:
    cleaned = (text or "").strip()
    if mode == QueryMode.DRUG_IDENTIFY:
        if not cleaned:
            return ""
        if language == Language.ZH:
            return f"请详细查询药品：{cleaned}，并提供全面的用药指导。"
        return f"Look up the drug: {cleaned}, and provide complete medication guidance."
    if not cleaned:
        cleaned = _NO_TEXT[language]
    label = "用户症状" if language == Language.ZH else "User Symptoms"
    return f"{label}: {cleaned}" if has_image else cleaned


@lru_cache(maxsize=None)
def build_prompt(mode: QueryMode, language: Language, has_image: bool = False) -> PromptSpec:
    mode = QueryMode(mode)
    language = Language(language)
    rule = _LANGUAGE_RULE[language]
    if mode == QueryMode.DRUG_IDENTIFY:
        system = _DRUG_PROMPT.format(sentinel=UNRECOGNIZED_SENTINELS[language], language_rule=rule)
    else:
        system = _TRIAGE_PROMPT.format(language_rule=rule)
    return PromptSpec(
        mode=mode,
        language=language,
        has_image=has_image,
        system_instruction=system,
        image_instruction=_IMAGE_INSTRUCTION[(mode, language)] if has_image else "",
    )

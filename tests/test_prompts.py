import pytest

from medquery.prompts import UNRECOGNIZED_SENTINELS, build_prompt, user_text
from medquery.records import Language, QueryMode


def test_build_prompt_is_cached():
    assert build_prompt(QueryMode.DRUG_IDENTIFY, Language.ZH, False) is build_prompt(QueryMode.DRUG_IDENTIFY, Language.ZH, False)


@pytest.mark.parametrize("language", [Language.ZH, Language.EN])
def test_drug_prompt_embeds_shape_and_sentinel(language):
    spec = build_prompt(QueryMode.DRUG_IDENTIFY, language)
    for key in ("name", "indications", "dosage", "contraindications", "storage", "sideEffects", "usage_tips", "summary", "isHighRisk", "riskReason"):
        assert f'"{key}"' in spec.system_instruction
    assert f'"{UNRECOGNIZED_SENTINELS[language]}"' in spec.system_instruction


def test_output_language_is_named_explicitly():
    assert "SIMPLIFIED CHINESE" in build_prompt(QueryMode.SYMPTOM_TRIAGE, Language.ZH).system_instruction
    assert "ENGLISH" in build_prompt(QueryMode.SYMPTOM_TRIAGE, Language.EN).system_instruction


def test_triage_prompt_rules():
    prompt = build_prompt(QueryMode.SYMPTOM_TRIAGE, Language.EN).system_instruction
    assert "2-3" in prompt
    assert '"Low", "Medium", "High"' in prompt
    assert "breathing difficulty" in prompt
    assert '"potential_conditions"' in prompt


def test_text_messages_are_system_then_user():
    spec = build_prompt(QueryMode.DRUG_IDENTIFY, Language.ZH)
    messages = spec.messages("布洛芬")
    assert [m["role"] for m in messages] == ["system", "user"]
    assert "布洛芬" in messages[1]["content"]


def test_image_messages_are_multipart():
    spec = build_prompt(QueryMode.SYMPTOM_TRIAGE, Language.EN, True)
    messages = spec.messages("itchy rash", "data:image/png;base64,AAAA")
    parts = messages[1]["content"]
    assert parts[0] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}
    assert parts[1]["type"] == "text"
    assert "itchy rash" in parts[1]["text"]


def test_image_prompt_without_image_data():
    spec = build_prompt(QueryMode.DRUG_IDENTIFY, Language.EN, True)
    with pytest.raises(ValueError):
        spec.messages(None, None)


def test_user_text_is_not_filtered():
    text = "头痛 <b>!!</b> 3天"
    assert text in user_text(QueryMode.SYMPTOM_TRIAGE, Language.ZH, text)


def test_image_only_triage_gets_placeholder():
    assert "无文字描述" in user_text(QueryMode.SYMPTOM_TRIAGE, Language.ZH, "", has_image=True)
    assert "No text provided" in user_text(QueryMode.SYMPTOM_TRIAGE, Language.EN, None, has_image=True)

import json

import pytest

from medquery.engine import QueryEngine
from medquery.errors import MalformedResponseError, NetworkError, UnrecognizedSubjectError, ValidationError
from medquery.records import DrugRecord, Language, QueryMode, TriageRecord

from conftest import FakeClient


def test_identify_drug_from_fenced_reply(drug_payload):
    client = FakeClient(replies=["```json\n" + json.dumps(drug_payload, ensure_ascii=False) + "\n```"])
    record = QueryEngine(client).identify_drug(text="布洛芬", language=Language.ZH)
    assert isinstance(record, DrugRecord)
    assert record.name == "布洛芬"
    spec, request = client.sent[0]
    assert spec.mode == QueryMode.DRUG_IDENTIFY
    assert not spec.has_image


def test_image_query_selects_image_prompt(triage_payload):
    client = FakeClient(replies=["Result: " + json.dumps(triage_payload)])
    record = QueryEngine(client).triage_symptoms(image=b"\xff\xd8\xff\xe0", language="en")
    assert isinstance(record, TriageRecord)
    spec, request = client.sent[0]
    assert spec.has_image
    assert request.language == Language.EN


def test_unrecognized_drug_never_returns_a_record(drug_payload):
    drug_payload["name"] = "Unrecognized"
    client = FakeClient(replies=[json.dumps(drug_payload)])
    with pytest.raises(UnrecognizedSubjectError):
        QueryEngine(client).identify_drug(text="xyz", language=Language.EN)


def test_bad_urgency_inside_fence(triage_payload):
    triage_payload["urgency"] = "Extreme"
    reply = "Here is the result:\n```json\n" + json.dumps(triage_payload) + "\n```"
    with pytest.raises(ValidationError) as info:
        QueryEngine(FakeClient(replies=[reply])).triage_symptoms(text="headache")
    assert info.value.field == "urgency"


def test_prose_only_reply_is_malformed():
    with pytest.raises(MalformedResponseError):
        QueryEngine(FakeClient(replies=["I cannot help."])).triage_symptoms(text="headache")


def test_transport_errors_propagate_unchanged():
    error = NetworkError("down")
    with pytest.raises(NetworkError) as info:
        QueryEngine(FakeClient(replies=[error])).identify_drug(text="布洛芬")
    assert info.value is error


@pytest.mark.parametrize(
    "kwargs",
    [{}, {"text": "布洛芬", "image": b"\xff\xd8\xff"}, {"text": "   "}],
)
def test_drug_needs_exactly_one_input(kwargs):
    client = FakeClient()
    with pytest.raises(ValueError):
        QueryEngine(client).identify_drug(**kwargs)
    assert client.sent == []


def test_triage_needs_some_input():
    with pytest.raises(ValueError):
        QueryEngine(FakeClient()).triage_symptoms(text="", image=None)


def test_identical_queries_are_not_cached(drug_payload):
    reply = json.dumps(drug_payload)
    client = FakeClient(replies=[reply, reply])
    engine = QueryEngine(client)
    engine.identify_drug(text="布洛芬")
    engine.identify_drug(text="布洛芬")
    assert len(client.sent) == 2


def test_follow_up_through_engine(triage_payload):
    client = FakeClient(replies=[json.dumps(triage_payload)], answers=["Rest well."])
    engine = QueryEngine(client)
    record = engine.triage_symptoms(text="sore throat", language=Language.EN)
    context = engine.start_conversation(record, Language.EN)
    assert engine.ask(context, "Should I see a doctor?") == "Rest well."
    assert len(context.turns) == 2


def test_engine_phase_helpers():
    engine = QueryEngine(FakeClient(), phase_interval=0.05)
    handle = engine.start_loading_phases(QueryMode.DRUG_IDENTIFY, Language.ZH)
    engine.stop_loading_phases(handle)
    assert not handle.active
    assert handle.interval == 0.05

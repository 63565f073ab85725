import base64
import json

import pytest
from fastapi.testclient import TestClient

from medquery.engine import QueryEngine
from medquery.errors import NetworkError, ProviderError
from webapp.backend.app import app, provide_engine
from webapp.backend.deps import Settings, get_settings

from conftest import FakeClient


@pytest.fixture
def client_for():
    def make(fake):
        app.dependency_overrides[provide_engine] = lambda: QueryEngine(fake)
        app.dependency_overrides[get_settings] = lambda: Settings(llm_api_key="sk-test", phase_interval=1.5)
        return TestClient(app)

    yield make
    app.dependency_overrides.clear()


def test_health(client_for):
    resp = client_for(FakeClient()).get("/health")
    assert resp.status_code == 200
    assert resp.json()["api_key_configured"] is True


def test_drug_lookup(client_for, drug_payload):
    resp = client_for(FakeClient(replies=[json.dumps(drug_payload)])).post("/drug", json={"text": "布洛芬", "language": "zh"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "布洛芬"
    assert body["sideEffects"] == drug_payload["sideEffects"]


def test_triage_with_image(client_for, triage_payload):
    fake = FakeClient(replies=[json.dumps(triage_payload)])
    image = "data:image/jpeg;base64," + base64.b64encode(b"\xff\xd8\xff\xe0rash").decode()
    resp = client_for(fake).post("/triage", json={"image_base64": image, "language": "en"})
    assert resp.status_code == 200
    assert resp.json()["urgency"] == "Medium"
    assert fake.sent[0][1].image == b"\xff\xd8\xff\xe0rash"


def test_unrecognized_drug_is_404(client_for, drug_payload):
    drug_payload["name"] = "未识别"
    resp = client_for(FakeClient(replies=[json.dumps(drug_payload)])).post("/drug", json={"text": "???"})
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "unrecognized_subject"


def test_validation_error_reports_field(client_for, triage_payload):
    triage_payload["urgency"] = "Extreme"
    resp = client_for(FakeClient(replies=[json.dumps(triage_payload)])).post("/triage", json={"text": "headache", "language": "en"})
    assert resp.status_code == 422
    assert resp.json()["detail"]["field"] == "urgency"


@pytest.mark.parametrize("error, status", [(NetworkError("down"), 504), (ProviderError(429), 502)])
def test_transport_errors(client_for, error, status):
    resp = client_for(FakeClient(replies=[error])).post("/drug", json={"text": "布洛芬"})
    assert resp.status_code == status


def test_bad_input_is_400(client_for):
    resp = client_for(FakeClient()).post("/triage", json={"text": "  "})
    assert resp.status_code == 400


def test_ask_returns_updated_turns(client_for, drug_payload):
    fake = FakeClient(answers=["饭后服用。"])
    body = {
        "mode": "drug",
        "language": "zh",
        "record": drug_payload,
        "turns": [{"role": "user", "text": "q0"}, {"role": "assistant", "text": "a0"}],
        "question": "饭前还是饭后？",
    }
    resp = client_for(fake).post("/ask", json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data["answer"] == "饭后服用。"
    assert [t["text"] for t in data["turns"]] == ["q0", "a0", "饭前还是饭后？", "饭后服用。"]


def test_ask_failure_is_503_with_fallback(client_for, drug_payload):
    fake = FakeClient(answers=[NetworkError("down")])
    body = {"mode": "drug", "language": "en", "record": drug_payload, "question": "Why?"}
    resp = client_for(fake).post("/ask", json=body)
    assert resp.status_code == 503
    assert resp.json()["detail"]["message"] == "Sorry, I'm unable to answer right now."


def test_phase_labels_endpoint(client_for):
    resp = client_for(FakeClient()).get("/phases/triage", params={"language": "en"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["labels"][0] == "Connecting AI Brain..."
    assert data["interval_seconds"] == 1.5


@pytest.mark.parametrize("raw, expected", [("0", False), ("off", False), ("YES", True)])
def test_settings_read_json_mode_flags(monkeypatch, raw, expected):
    monkeypatch.setenv("LLM_JSON_MODE", raw)
    monkeypatch.setenv("LLM_VISION_JSON_MODE", raw)
    settings = Settings.from_env()
    assert settings.json_mode is expected
    assert settings.vision_json_mode is expected


def test_settings_json_mode_defaults(monkeypatch):
    monkeypatch.delenv("LLM_JSON_MODE", raising=False)
    monkeypatch.delenv("LLM_VISION_JSON_MODE", raising=False)
    settings = Settings.from_env()
    assert settings.json_mode is True
    assert settings.vision_json_mode is False

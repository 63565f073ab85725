import json

import pytest
import requests


DRUG_PAYLOAD = {
    "name": "布洛芬",
    "indications": "止痛、退热",
    "dosage": "成人一次0.2g，一日3次",
    "contraindications": "对本品过敏者禁用",
    "storage": "密封，阴凉干燥处保存",
    "sideEffects": "胃肠道不适",
    "usage_tips": "饭后服用；服药期间避免饮酒",
    "summary": "布洛芬是常用的解热镇痛药。",
    "isHighRisk": False,
    "riskReason": "",
}

TRIAGE_PAYLOAD = {
    "urgency": "Medium",
    "urgency_reason": "Fever for three days",
    "summary": "Likely a viral upper respiratory infection.",
    "potential_conditions": [
        {
            "name": "Common cold",
            "probability": "High",
            "explanation": "Sore throat and runny nose",
            "medications": ["Paracetamol"],
            "treatments": ["Rest", "Fluids"],
        },
        {
            "name": "Influenza",
            "probability": "Medium",
            "explanation": "Fever and body aches",
            "medications": [],
            "treatments": [],
        },
    ],
    "lifestyle_advice": "Rest and stay hydrated.",
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


def completion(content, total_tokens=42):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}], "usage": {"total_tokens": total_tokens}})


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeClient:
    """Stands in for LLMClient at the engine / conversation level."""

    def __init__(self, replies=None, answers=None):
        self.replies = list(replies or [])
        self.answers = list(answers or [])
        self.sent = []
        self.chats = []

    def send(self, spec, request):
        self.sent.append((spec, request))
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def chat(self, system_message, user_message):
        self.chats.append((system_message, user_message))
        item = self.answers.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def drug_payload():
    return json.loads(json.dumps(DRUG_PAYLOAD))


@pytest.fixture
def triage_payload():
    return json.loads(json.dumps(TRIAGE_PAYLOAD))


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")

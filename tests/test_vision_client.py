# tests/test_vision_client.py
from __future__ import annotations

import json

import httpx
import pytest

from inspection_engine.domain.comparison import Evidence
from inspection_engine.domain.errors import ExternalCapabilityFailure
from inspection_engine.integrations.vision_client import (
    ClaudeVisionClassifier,
    ConditionRuleClassifier,
    get_classifier,
    strip_json_fence,
)

ENTRY = Evidence("good", notes="new carpet", image_urls=("https://cdn.example.com/e1.jpg",))
EXIT = Evidence("damaged", notes="red wine stain", image_urls=("https://cdn.example.com/x1.jpg", "https://cdn.example.com/x2.jpg"))


def _answer(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


def _client(handler) -> ClaudeVisionClassifier:
    return ClaudeVisionClassifier(api_key="test-key", base_url="https://vision.test/v1", model="m", transport=httpx.MockTransport(handler))


def test_fenced_json_answer_is_parsed():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-api-key")
        seen["body"] = json.loads(request.content)
        body = {
            "change_type": "major_damage",
            "is_tenant_responsible": True,
            "confidence": 0.82,
            "estimated_cost": 450,
            "severity": "major",
            "description": "Large stain across carpet",
            "evidence_notes": "stain visible in exit photo 2",
        }
        return httpx.Response(200, json=_answer("```json\n" + json.dumps(body) + "\n```"))

    c = _client(handler).classify(ENTRY, EXIT, "Carpet")

    assert seen["url"] == "https://vision.test/v1/messages"
    assert seen["key"] == "test-key"
    content = seen["body"]["messages"][0]["content"]
    assert [b["type"] for b in content] == ["image", "image", "image", "text"]
    assert c.change_type == "major_damage"
    assert c.confidence == pytest.approx(0.82)
    assert c.estimated_cost == pytest.approx(450.0)


def test_http_error_becomes_capability_failure():
    c = _client(lambda request: httpx.Response(503, json={"error": "overloaded"}))
    with pytest.raises(ExternalCapabilityFailure) as e:
        c.classify(ENTRY, EXIT, "Carpet")
    assert "503" in e.value.message


def test_malformed_answer_becomes_capability_failure():
    c = _client(lambda request: httpx.Response(200, json=_answer("the carpet looks bad")))
    with pytest.raises(ExternalCapabilityFailure):
        c.classify(ENTRY, EXIT, "Carpet")


def test_unknown_change_type_becomes_capability_failure():
    bad = json.dumps({"change_type": "vandalism", "is_tenant_responsible": True, "confidence": 0.9})
    c = _client(lambda request: httpx.Response(200, json=_answer(bad)))
    with pytest.raises(ExternalCapabilityFailure):
        c.classify(ENTRY, EXIT, "Carpet")


def test_missing_key_fails_without_calling_out():
    def handler(request):
        raise AssertionError("should not be called")

    c = ClaudeVisionClassifier(api_key="", transport=httpx.MockTransport(handler))
    assert not c.enabled()
    with pytest.raises(ExternalCapabilityFailure):
        c.classify(ENTRY, EXIT, "Carpet")


def test_strip_json_fence():
    assert strip_json_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_json_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_json_fence(' {"a": 1} ') == '{"a": 1}'


def test_rule_classifier_is_default_when_vision_disabled():
    assert isinstance(get_classifier(), ConditionRuleClassifier)


@pytest.mark.parametrize("flag", ["false", "no", 0, None])
def test_non_boolean_tenant_flag_becomes_capability_failure(flag):
    body = json.dumps({"change_type": "minor_damage", "is_tenant_responsible": flag, "confidence": 0.9, "estimated_cost": 120})
    c = _client(lambda request: httpx.Response(200, json=_answer(body)))
    with pytest.raises(ExternalCapabilityFailure):
        c.classify(ENTRY, EXIT, "Carpet")


def test_string_cost_becomes_capability_failure():
    body = json.dumps({"change_type": "minor_damage", "is_tenant_responsible": False, "confidence": 0.9, "estimated_cost": "120"})
    c = _client(lambda request: httpx.Response(200, json=_answer(body)))
    with pytest.raises(ExternalCapabilityFailure):
        c.classify(ENTRY, EXIT, "Carpet")

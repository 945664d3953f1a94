import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from core.exceptions import (
    AnnotationError, AnnotationRateLimitError, AnnotationResponseError, ErrorRecovery
)
from integrations.openai_client import OpenAIAnnotator


class FakeCompletions:
    def __init__(self, content=None, error=None, finish_reason="stop"):
        self.content = content
        self.error = error
        self.finish_reason = finish_reason
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content, role="assistant")
        choice = SimpleNamespace(message=message, finish_reason=self.finish_reason)
        usage = SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30)
        return SimpleNamespace(choices=[choice], usage=usage)


def make_annotator(**kwargs):
    completions = FakeCompletions(**kwargs)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIAnnotator(model="test-model", client=client), completions


def tokens_payload(*surfaces):
    return json.dumps({"tokens": [
        {"surface": s, "reading": s, "base_form": s, "gloss": f"gloss of {s}"} for s in surfaces
    ]}, ensure_ascii=False)


def test_tokenize_returns_tokens_in_order():
    annotator, completions = make_annotator(content=tokens_payload("雪", "が", "降りました"))

    tokens = annotator.tokenize("雪が降りました")

    assert [t.surface for t in tokens] == ["雪", "が", "降りました"]
    assert tokens[0].gloss == "gloss of 雪"
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["response_format"]["type"] == "json_schema"
    assert "雪が降りました" in request["messages"][1]["content"]


def test_tokenize_accepts_fenced_response():
    annotator, _ = make_annotator(content="```json\n" + tokens_payload("雪") + "\n```")

    assert [t.surface for t in annotator.tokenize("雪")] == ["雪"]


def test_tokenize_accepts_bare_list():
    annotator, _ = make_annotator(content='[{"surface": "雪", "reading": "ゆき"}]')

    tokens = annotator.tokenize("雪")

    assert tokens[0].reading == "ゆき"
    assert tokens[0].base_form == ""


@pytest.mark.parametrize("content", [
    "not json at all",
    '{"words": []}',
    '{"tokens": [{"reading": "ゆき"}]}',
    '{"tokens": []}',
    "",
])
def test_malformed_responses_raise_response_error(content):
    annotator, _ = make_annotator(content=content)

    with pytest.raises(AnnotationResponseError) as excinfo:
        annotator.tokenize("雪")

    assert excinfo.value.rate_limited is False


def test_truncated_response_is_rejected():
    annotator, _ = make_annotator(content='{"tokens": [', finish_reason="length")

    with pytest.raises(AnnotationResponseError):
        annotator.tokenize("雪")


def test_sdk_rate_limit_error_is_classified():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request)
    error = openai.RateLimitError("Too Many Requests", response=response, body=None)
    annotator, _ = make_annotator(error=error)

    with pytest.raises(AnnotationRateLimitError):
        annotator.tokenize("雪")


@pytest.mark.parametrize("message", [
    "Error code: 429 - quota exceeded",
    "RESOURCE_EXHAUSTED: Resource has been exhausted (e.g. check quota).",
])
def test_rate_limit_signatures_in_error_text_are_classified(message):
    annotator, _ = make_annotator(error=RuntimeError(message))

    with pytest.raises(AnnotationRateLimitError):
        annotator.tokenize("雪")


def test_other_errors_are_plain_annotation_errors():
    annotator, _ = make_annotator(error=RuntimeError("Bad gateway"))

    with pytest.raises(AnnotationError) as excinfo:
        annotator.tokenize("雪")

    assert not isinstance(excinfo.value, AnnotationRateLimitError)
    assert excinfo.value.context["provider"] == "openai"
    assert excinfo.value.to_dict()["error_type"] == "AnnotationError"


def test_is_rate_limit_error_reads_status_codes():
    assert ErrorRecovery.is_rate_limit_error(SimpleNamespace(status_code=429))
    assert ErrorRecovery.is_rate_limit_error(SimpleNamespace(response=SimpleNamespace(status_code=429)))
    assert not ErrorRecovery.is_rate_limit_error(RuntimeError("status 500"))
    assert not ErrorRecovery.is_rate_limit_error(None)


def test_missing_api_key_is_rejected(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError):
        OpenAIAnnotator()


def test_test_connection_reports_failure():
    annotator, _ = make_annotator(error=RuntimeError("unreachable"))

    assert annotator.test_connection() is False

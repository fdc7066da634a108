from __future__ import annotations

import json

import pytest

from fixtures import make_records
from grammar_quiz.quiz import provider as provider_mod
from grammar_quiz.quiz.errors import (
    EmptyResponse,
    GenerationError,
    InvalidCredential,
    MalformedResponse,
    MissingCredential,
    ProviderUnavailable,
)
from grammar_quiz.quiz.models import UsageType
from grammar_quiz.quiz.provider import (
    QuestionProvider,
    build_prompt,
    build_response_format,
    parse_questions,
    strip_code_fence,
)
from grammar_quiz.quiz.session import FailedPhase, QuizController


class StatusError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@pytest.mark.parametrize(
    "raw",
    [
        '```json\n[{"id": "1"}]\n```',
        '```\n[{"id": "1"}]\n```',
        '  ```JSON\n[{"id": "1"}]\n```  \n',
        '```[{"id": "1"}]```',
        '[{"id": "1"}]',
        '\n  [{"id": "1"}]  \n',
    ],
)
def test_strip_code_fence_variants(raw: str) -> None:
    assert strip_code_fence(raw) == '[{"id": "1"}]'


def test_strip_code_fence_keeps_inner_backticks() -> None:
    inner = '{"text": "use `have` here"}'
    assert strip_code_fence(f"```json\n{inner}\n```") == inner


def test_fenced_and_plain_parse_identically() -> None:
    payload = json.dumps(make_records(3), ensure_ascii=False)
    fenced = f"```json\n{payload}\n```"
    assert parse_questions(fenced) == parse_questions(payload)


def test_parse_accepts_questions_wrapper() -> None:
    records = make_records(2)
    wrapped = json.dumps({"questions": records})
    assert [q.id for q in parse_questions(wrapped)] == ["q0", "q1"]


@pytest.mark.parametrize(
    "payload",
    ["not json", "{\"questions\": 3}", "\"text\"", "[1, 2]", "{\"id\": \"q\"}"],
)
def test_parse_rejects_malformed(payload: str) -> None:
    with pytest.raises(MalformedResponse):
        parse_questions(payload)


def test_parse_deeply_nested_output_is_malformed() -> None:
    depth = 200_000
    with pytest.raises(MalformedResponse):
        parse_questions("[" * depth + "]" * depth)


def test_parse_blank_is_empty_response() -> None:
    with pytest.raises(EmptyResponse):
        parse_questions("```json\n\n```")


def test_parse_without_strict_returns_records_as_is() -> None:
    records = make_records(1)
    records[0]["options"] = ["only", "three", "options"]
    records[0]["correctAnswer"] = "missing"
    questions = parse_questions(json.dumps(records))
    assert questions[0].options == ("only", "three", "options")


def test_parse_strict_rejects_answer_outside_options() -> None:
    records = make_records(2)
    records[1]["correctAnswer"] = "had been"
    with pytest.raises(MalformedResponse) as exc:
        parse_questions(json.dumps(records), strict=True)
    assert "q1" in exc.value.user_message


def test_build_prompt_mentions_topic_and_usage() -> None:
    prompt = build_prompt(5, UsageType.RESULT)
    assert "Generate 5" in prompt
    assert "Present Perfect" in prompt
    assert "결과 (Result)" in prompt
    assert "have/has + p.p." in prompt


def test_build_prompt_expands_mixed() -> None:
    prompt = build_prompt(3, UsageType.MIXED)
    assert "all subcategories" in prompt
    for name in ("Experience", "Continuation", "Completion", "Result"):
        assert name in prompt


def test_response_format_schema_shape() -> None:
    fmt = build_response_format()
    schema = fmt["json_schema"]["schema"]
    item = schema["properties"]["questions"]["items"]
    assert fmt["type"] == "json_schema"
    assert set(item["required"]) == set(item["properties"])
    assert len(item["required"]) == 7
    assert item["properties"]["options"]["minItems"] == 4
    assert item["properties"]["options"]["maxItems"] == 4


def test_generate_success(make_provider, fake_client, batch_json) -> None:
    fake_client.queue_response(batch_json(5))
    provider = make_provider(model="gpt-test", temperature=0.3)

    questions = provider.generate(5, UsageType.MIXED)

    assert len(questions) == 5
    assert len(fake_client.calls) == 1
    call = fake_client.calls[0]
    assert call["model"] == "gpt-test"
    assert call["temperature"] == 0.3
    assert call["response_format"]["type"] == "json_schema"
    assert "Generate 5" in call["messages"][-1]["content"]


def test_generate_passes_resolved_credential(
    make_provider, client_factory, fake_client, batch_json
) -> None:
    fake_client.queue_response(batch_json(1))
    make_provider().generate(1, UsageType.EXPERIENCE)
    assert client_factory.credentials[0].value == "sk-test"
    assert client_factory.credentials[0].source == "environment"


def test_generate_missing_credential_makes_no_call(
    make_provider, client_factory, empty_sources
) -> None:
    provider = make_provider(sources=empty_sources)

    with pytest.raises(MissingCredential) as exc:
        provider.generate(5, UsageType.MIXED)

    assert client_factory.call_count == 0
    assert client_factory.credentials == []
    message = exc.value.user_message
    for hint in ("OPENAI_API_KEY", "GRAMMAR_QUIZ_API_KEY", "?key=", "?apiKey="):
        assert hint in message


@pytest.mark.parametrize("content", ["", None, "   \n"])
def test_generate_empty_body(make_provider, fake_client, content) -> None:
    fake_client.queue_response(content)
    with pytest.raises(EmptyResponse):
        make_provider().generate(2, UsageType.MIXED)


def test_generate_no_choices_is_empty(make_provider, fake_client) -> None:
    from types import SimpleNamespace

    fake_client.side_effect = lambda kwargs: SimpleNamespace(choices=[])
    with pytest.raises(EmptyResponse):
        make_provider().generate(2, UsageType.MIXED)


def test_generate_malformed_is_not_retried(make_provider, fake_client) -> None:
    fake_client.queue_response("Sure! Here are your questions: [")
    with pytest.raises(MalformedResponse):
        make_provider().generate(2, UsageType.MIXED)
    assert len(fake_client.calls) == 1


def test_controller_fails_cleanly_on_nested_output(
    make_provider, fake_client
) -> None:
    fake_client.queue_response("[" * 200_000 + "]" * 200_000)
    controller = QuizController(make_provider())

    phase = controller.start(1, UsageType.MIXED)

    assert isinstance(phase, FailedPhase)
    assert isinstance(phase.error, MalformedResponse)


def test_generate_strict_validation(make_provider, fake_client) -> None:
    records = make_records(2)
    records[0]["options"] = records[0]["options"][:3]
    fake_client.queue_response(json.dumps(records))
    with pytest.raises(MalformedResponse):
        make_provider(strict_validation=True).generate(2, UsageType.MIXED)


@pytest.mark.parametrize(
    "error",
    [
        StatusError("Error code: 401", 401),
        StatusError("nope", 403),
        RuntimeError("Incorrect API key provided: sk-***"),
        RuntimeError("403 Forbidden"),
    ],
)
def test_generate_auth_failures_become_invalid_credential(
    make_provider, fake_client, error
) -> None:
    def boom(kwargs):
        raise error

    fake_client.side_effect = boom
    with pytest.raises(InvalidCredential) as exc:
        make_provider().generate(2, UsageType.MIXED)
    assert "OPENAI_API_KEY" in exc.value.user_message
    assert exc.value.__cause__ is error


def test_generate_transport_failure_preserves_message(
    make_provider, fake_client
) -> None:
    def boom(kwargs):
        raise ConnectionError("connection reset by peer")

    fake_client.side_effect = boom
    with pytest.raises(ProviderUnavailable) as exc:
        make_provider().generate(2, UsageType.MIXED)
    assert "connection reset by peer" in exc.value.user_message
    assert isinstance(exc.value, GenerationError)


def test_status_numbers_in_transport_messages_are_not_auth(
    make_provider, fake_client
) -> None:
    def boom(kwargs):
        raise ConnectionError("request req_401 to 10.0.0.7:403 timed out")

    fake_client.side_effect = boom
    with pytest.raises(ProviderUnavailable):
        make_provider().generate(2, UsageType.MIXED)


def test_generate_rejects_non_positive_count(make_provider, fake_client) -> None:
    with pytest.raises(ValueError):
        make_provider().generate(0, UsageType.MIXED)
    assert fake_client.calls == []


def test_default_client_factory_uses_load_client(monkeypatch) -> None:
    seen = {}

    def fake_load_client(api_key, *, timeout=None):
        seen.update(api_key=api_key, timeout=timeout)
        return "client"

    monkeypatch.setattr(provider_mod, "load_client", fake_load_client)
    provider = QuestionProvider(timeout=9.0)
    credential = provider_mod.ResolvedCredential(value="k", source="url")

    assert provider.client_factory(credential) == "client"
    assert seen == {"api_key": "k", "timeout": 9.0}

"""Tests for clients.py: outbound HTTP calls and their typed errors."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from evaluation_service import authorship, clients
from evaluation_service.clients import (
    MalformedResponse,
    NotConfigured,
    NotFound,
    ServiceUnavailable,
    extract_json_object,
    prepare_source,
)
from evaluation_service.harness import run_test_cases
from evaluation_service.pipeline import assess_authorship, judge_submission
from evaluation_service.schemas import SandboxResult, TestCase

_RealAsyncClient = httpx.AsyncClient


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient created by the clients through a handler."""

    def install(handler):
        transport = httpx.MockTransport(handler)
        monkeypatch.setattr(
            clients.httpx, "AsyncClient", lambda **kw: _RealAsyncClient(transport=transport, **kw)
        )

    return install


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def test_extract_json_from_markdown_fence():
    text = 'Sure! Here is my answer:\n```json\n{"isGenerated": true, "confidence": 90}\n```\nThanks.'
    assert extract_json_object(text) == {"isGenerated": True, "confidence": 90}


def test_extract_json_skips_broken_candidates():
    text = 'I think {not json} but {"logicScore": 70, "qualityScore": 60, "reasoning": "ok"} is.'
    assert extract_json_object(text)["logicScore"] == 70


def test_extract_json_raises_without_object():
    with pytest.raises(MalformedResponse):
        extract_json_object("no braces here")


# ---------------------------------------------------------------------------
# Sandbox
# ---------------------------------------------------------------------------

def test_prepare_source_renames_java_class():
    code = "public class Solution { public static void main(String[] a) {} }"
    assert prepare_source(code, "java").startswith("public class Main {")


def test_prepare_source_wraps_java_statements():
    wrapped = prepare_source('System.out.println("hi");', "java")
    assert "public static void main" in wrapped
    assert 'System.out.println("hi");' in wrapped


def test_prepare_source_leaves_other_languages():
    assert prepare_source("print(1)", "python") == "print(1)"


def test_sandbox_output_precedence():
    assert SandboxResult(stdout="out", stderr="err", compile_output="cc").output == "cc"
    assert SandboxResult(stdout="out", stderr="err").output == "err"
    assert SandboxResult(stdout="out").output == "out"
    assert SandboxResult().output == ""


@pytest.mark.asyncio
async def test_execute_code_posts_judge0_payload(mock_http):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        import json

        seen["params"] = dict(request.url.params)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"stdout": "3\n", "stderr": None, "compile_output": None})

    mock_http(handler)
    result = await clients.execute_code("print(1+2)", "python", "")

    assert result.output == "3\n"
    assert seen["body"]["language_id"] == 71
    assert seen["params"]["wait"] == "true"


@pytest.mark.asyncio
async def test_execute_code_timeout_is_service_unavailable(mock_http):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    mock_http(handler)
    with pytest.raises(ServiceUnavailable):
        await clients.execute_code("print(1)", "python", "")


@pytest.mark.asyncio
async def test_execute_code_rejects_unknown_language():
    with pytest.raises(MalformedResponse):
        await clients.execute_code("x", "brainfuck", "")


# ---------------------------------------------------------------------------
# Classifier / judge
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_classifier_disabled_raises_not_configured(monkeypatch):
    monkeypatch.setattr(clients.settings, "classifier_enabled", False)
    with pytest.raises(NotConfigured):
        await clients.classify_authorship("x = 1", "python")


@pytest.mark.asyncio
async def test_classifier_parses_verdict(monkeypatch):
    monkeypatch.setattr(clients.settings, "classifier_enabled", True)
    reply = {"isAI": False, "confidence": 80, "reasoning": "quick hacks"}
    with patch.object(clients, "_chat_json", AsyncMock(return_value=reply)):
        verdict = await clients.classify_authorship("x = 1", "python")
    assert verdict.is_generated is False
    assert verdict.likelihood == 20


@pytest.mark.asyncio
async def test_chat_without_key_raises_not_configured(monkeypatch):
    monkeypatch.setattr(clients.settings, "llm_api_key", "")
    with pytest.raises(NotConfigured):
        await clients.judge_code("q", [], "x", "python")


@pytest.mark.asyncio
async def test_chat_extracts_json_from_completion(monkeypatch, mock_http):
    monkeypatch.setattr(clients.settings, "llm_api_key", "sk-test")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer sk-test"
        content = 'Evaluation:\n```json\n{"logicScore": 140, "qualityScore": 65, "reasoning": "fine"}\n```'
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    mock_http(handler)
    verdict = await clients.judge_code("Sum two numbers", [TestCase(input="1 2", output="3")], "x", "python")
    assert verdict.logic_score == 100
    assert verdict.quality_score == 65


@pytest.mark.asyncio
async def test_judge_rejects_incomplete_json(monkeypatch):
    with patch.object(clients, "_chat_json", AsyncMock(return_value={"logicScore": 70})):
        with pytest.raises(MalformedResponse):
            await clients.judge_code("q", [], "x", "python")


# ---------------------------------------------------------------------------
# Assessment service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_assessment_not_found(mock_http):
    mock_http(lambda request: httpx.Response(404, json={"detail": "nope"}))
    with pytest.raises(NotFound):
        await clients.get_assessment("missing")


@pytest.mark.asyncio
async def test_get_assessment_parses_definition(mock_http):
    payload = {
        "question": "Echo input",
        "test_cases": [{"input": "a", "output": "a"}],
        "marks": 20,
        "reference_solution": "print(input())",
    }
    mock_http(lambda request: httpx.Response(200, json=payload))
    assessment = await clients.get_assessment("exam-1")
    assert assessment.marks == 20
    assert assessment.test_cases[0].output == "a"


# ---------------------------------------------------------------------------
# Transport failures degrade instead of escaping
# ---------------------------------------------------------------------------

TRANSPORT_ERRORS = [httpx.ReadError, httpx.RemoteProtocolError, httpx.WriteError]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", TRANSPORT_ERRORS)
async def test_sandbox_transport_error_fails_only_its_case(mock_http, error):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise error("connection reset", request=request)
        return httpx.Response(200, json={"stdout": "2\n"})

    mock_http(handler)
    cases = [TestCase(input="1", output="1"), TestCase(input="2", output="2")]
    result = await run_test_cases("print(input())", "python", cases)

    assert len(calls) == 2
    assert result.passed_count == 1
    assert result.results[0].passed is False
    assert "Sandbox unavailable" in result.results[0].error


@pytest.mark.asyncio
@pytest.mark.parametrize("error", TRANSPORT_ERRORS)
async def test_classifier_transport_error_keeps_heuristic(monkeypatch, mock_http, error):
    monkeypatch.setattr(clients.settings, "classifier_enabled", True)
    monkeypatch.setattr(clients.settings, "llm_api_key", "sk-test")

    def handler(request: httpx.Request) -> httpx.Response:
        raise error("connection reset", request=request)

    mock_http(handler)
    with pytest.raises(ServiceUnavailable):
        await clients.classify_authorship("x = 1", "python")

    result = await assess_authorship("x = 1", "python")
    assert result.verdict is None
    assert result.score == authorship.score("x = 1", "python").score


@pytest.mark.asyncio
@pytest.mark.parametrize("error", TRANSPORT_ERRORS)
async def test_judge_transport_error_uses_neutral_scores(monkeypatch, mock_http, error):
    monkeypatch.setattr(clients.settings, "llm_api_key", "sk-test")

    def handler(request: httpx.Request) -> httpx.Response:
        raise error("connection reset", request=request)

    mock_http(handler)
    verdict = await judge_submission("q", [], "x", "python")
    assert verdict.logic_score == 50
    assert verdict.quality_score == 50
    assert "Judge evaluation failed" in verdict.reasoning


@pytest.mark.asyncio
async def test_assessment_transport_error_is_service_unavailable(mock_http):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.RemoteProtocolError("server disconnected", request=request)

    mock_http(handler)
    with pytest.raises(ServiceUnavailable):
        await clients.get_assessment("exam-1")

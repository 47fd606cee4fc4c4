from __future__ import annotations

import json
import logging
import re

import httpx
from pydantic import BaseModel, ValidationError

from .config import settings
from .schemas import Assessment, ClassifierVerdict, JudgeVerdict, SandboxResult, TestCase

logger = logging.getLogger(__name__)

LANGUAGE_IDS = {
    "javascript": 63,
    "python": 71,
    "cpp": 54,
    "c": 50,
    "java": 62,
}

JAVA_PUBLIC_CLASS_RE = re.compile(r"public\s+class\s+\w+")

CLASSIFIER_PROMPT = """You are a code authorship detector. Decide whether the code was likely \
produced by a code generation model rather than written by a student.

Consider: perfectly uniform formatting, overly descriptive names, comments that explain the \
obvious, generic names (result, data, temp), an explanatory tutorial tone, and the absence of \
typos or quick hacks.

Respond with ONLY a JSON object:
{"isGenerated": true/false, "confidence": 0-100, "reasoning": "brief explanation"}

"confidence" is how sure you are of the label you chose."""

JUDGE_PROMPT = """You are a code evaluation expert. Score the submitted code on two aspects:

1. LOGIC CORRECTNESS (0-100): does the approach solve the question as stated?
2. CODE QUALITY (0-100): readability, naming, efficiency, error handling, idiomatic use of \
the language.

Respond with ONLY a JSON object:
{"logicScore": 0-100, "qualityScore": 0-100, "reasoning": "brief explanation"}"""


class ExternalServiceError(RuntimeError):
    pass


class ServiceUnavailable(ExternalServiceError):
    pass


class MalformedResponse(ExternalServiceError):
    pass


class NotFound(ExternalServiceError):
    pass


class NotConfigured(ExternalServiceError):
    pass


def extract_json_object(text: str) -> dict:
    """Return the first well-formed JSON object embedded in ``text``.

    Tolerates prose and markdown fences around the object.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    raise MalformedResponse("No JSON object in response")


def prepare_source(code: str, language: str) -> str:
    """Java sources run as class Main; bare statements get wrapped in main()."""
    if language != "java":
        return code
    if "class" in code:
        return JAVA_PUBLIC_CLASS_RE.sub("public class Main", code, count=1)
    return (
        "public class Main {\n"
        "    public static void main(String[] args) throws Exception {\n"
        f"        {code}\n"
        "    }\n"
        "}\n"
    )


async def execute_code(code: str, language: str, stdin: str) -> SandboxResult:
    language_id = LANGUAGE_IDS.get(language)
    if language_id is None:
        raise MalformedResponse(f"Unsupported language: {language}")

    url = f"{settings.sandbox_url.rstrip('/')}/submissions"
    headers = {
        "X-RapidAPI-Key": settings.sandbox_api_key,
        "X-RapidAPI-Host": settings.sandbox_api_host,
    }
    payload = {
        "source_code": prepare_source(code, language),
        "stdin": stdin,
        "language_id": language_id,
    }
    try:
        async with httpx.AsyncClient(timeout=settings.sandbox_timeout) as client:
            resp = await client.post(
                url,
                params={"base64_encoded": "false", "wait": "true"},
                json=payload,
                headers=headers,
            )
        resp.raise_for_status()
        return SandboxResult.model_validate(resp.json())
    except httpx.RequestError as e:
        raise ServiceUnavailable(f"Sandbox unavailable: {e}")
    except httpx.HTTPStatusError as e:
        raise ServiceUnavailable(f"Sandbox error {e.response.status_code}: {e.response.text}")
    except (ValueError, ValidationError) as e:
        raise MalformedResponse(f"Sandbox returned malformed response: {e}")


async def _chat_json(system: str, user: str, timeout: float, max_tokens: int) -> dict:
    if not settings.llm_api_key:
        raise NotConfigured("No LLM API key configured")

    url = f"{settings.llm_base_url.rstrip('/')}/chat/completions"
    payload = {
        "model": settings.llm_model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "temperature": 0.3,
        "max_tokens": max_tokens,
    }
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {settings.llm_api_key}"},
            )
        resp.raise_for_status()
        content = resp.json()["choices"][0]["message"]["content"]
    except httpx.RequestError as e:
        raise ServiceUnavailable(f"LLM unavailable: {e}")
    except httpx.HTTPStatusError as e:
        raise ServiceUnavailable(f"LLM error {e.response.status_code}: {e.response.text}")
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise MalformedResponse(f"Unexpected LLM response shape: {e}")
    if not isinstance(content, str):
        raise MalformedResponse("LLM message content is not text")
    return extract_json_object(content)


def _validate(model: type[BaseModel], data: dict):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(f"Invalid {model.__name__}: {e}")


async def classify_authorship(code: str, language: str) -> ClassifierVerdict:
    if not settings.classifier_enabled:
        raise NotConfigured("Authorship classifier disabled")
    user = f"Language: {language}\n\nCode:\n```{language}\n{code}\n```"
    data = await _chat_json(CLASSIFIER_PROMPT, user, settings.classifier_timeout, max_tokens=200)
    return _validate(ClassifierVerdict, data)


async def judge_code(question: str, test_cases: list[TestCase], code: str, language: str) -> JudgeVerdict:
    cases = json.dumps([tc.model_dump() for tc in test_cases], indent=2)
    user = (
        f"Question:\n{question}\n\n"
        f"Test cases:\n{cases}\n\n"
        f"Submitted code ({language}):\n```{language}\n{code}\n```\n\n"
        "Evaluate the logic correctness and code quality."
    )
    data = await _chat_json(JUDGE_PROMPT, user, settings.judge_timeout, max_tokens=500)
    return _validate(JudgeVerdict, data)


async def get_assessment(assessment_id: str) -> Assessment:
    url = f"{settings.assessment_service_url.rstrip('/')}/assessments/{assessment_id}"
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(url)
        if resp.status_code == 404:
            raise NotFound(f"Assessment {assessment_id} not found")
        resp.raise_for_status()
        return _validate(Assessment, resp.json())
    except httpx.RequestError as e:
        raise ServiceUnavailable(f"Assessment service unavailable: {e}")
    except httpx.HTTPStatusError as e:
        raise ServiceUnavailable(f"Assessment service error {e.response.status_code}: {e.response.text}")
    except ValueError as e:
        raise MalformedResponse(f"Assessment service returned invalid JSON: {e}")

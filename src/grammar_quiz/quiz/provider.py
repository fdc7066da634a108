"""Question generation against the OpenAI chat completions API.

The provider is liberal in what it accepts from the model (fenced output,
an array or a ``{"questions": [...]}`` wrapper) and strict about failing
early: the credential is resolved before any request, and every failure is
raised as a :class:`~grammar_quiz.quiz.errors.GenerationError` subclass.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Optional, Sequence

import openai

from grammar_quiz.core.ai import load_client
from grammar_quiz.core.credentials import (
    CredentialSource,
    ResolvedCredential,
    default_sources,
    resolve_credential,
)

from .errors import (
    EmptyResponse,
    InvalidCredential,
    MalformedResponse,
    MissingCredential,
    ProviderUnavailable,
)
from .models import QUESTION_FIELDS, USAGE_TAGS, Question, UsageType, validate_question

__all__ = [
    "QuestionProvider",
    "build_prompt",
    "build_response_format",
    "parse_questions",
    "strip_code_fence",
]

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ResolvedCredential], Any]

_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL)
_AUTH_RE = re.compile(
    r"unauthori[sz]ed|forbidden|permission denied|invalid[ _-]?api[ _-]?key"
    r"|incorrect api key",
    re.IGNORECASE,
)

SYSTEM_PROMPT = (
    "You are an expert English teacher for Korean middle school students "
    "(3rd year). You write clear, unambiguous multiple-choice grammar "
    "questions and always answer with JSON only."
)


def strip_code_fence(text: str) -> str:
    """Trim ``text`` and unwrap a surrounding ```` ``` ```` block if present.

    Both ```` ```json ```` and bare fences are accepted. Text that is not
    wrapped is returned trimmed but otherwise unchanged.
    """
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def build_prompt(count: int, usage: UsageType) -> str:
    if usage is UsageType.MIXED:
        focus = (
            "Include a mix of all subcategories: Experience (경험), "
            "Continuation (계속), Completion (완료), and Result (결과)."
        )
    else:
        focus = f"Focus on the specific usage type: {usage.label}."
    return (
        f"Generate {count} multiple-choice grammar questions specifically "
        'about the "Present Perfect" tense (현재완료).\n\n'
        f"{focus}\n\n"
        "The questions should test:\n"
        "1. Correct form (have/has + p.p.)\n"
        "2. Distinguishing between usage types (e.g. deciding whether a "
        "sentence is 'experience' or 'result')\n"
        "3. Common mistakes Korean students make.\n\n"
        "Rules:\n"
        "- Each question has exactly 4 distinct options.\n"
        "- correctAnswer is the exact string of one option.\n"
        "- explanation is written in Korean.\n"
        f"- usageType is one of: {', '.join(USAGE_TAGS)}.\n"
        "- koreanTranslation is the Korean translation of the sentence.\n"
        "- id is unique within the batch.\n\n"
        'Provide the output strictly as JSON: {"questions": [...]} where '
        f"each object has exactly these fields: {', '.join(QUESTION_FIELDS)}."
    )


def build_response_format() -> dict[str, Any]:
    """Structured-output schema biasing the model toward the 7-field shape."""
    item = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "text": {
                "type": "string",
                "description": "The question sentence, often with a blank.",
            },
            "options": {
                "type": "array",
                "items": {"type": "string"},
                "minItems": 4,
                "maxItems": 4,
                "description": "4 multiple choice options.",
            },
            "correctAnswer": {
                "type": "string",
                "description": "The exact string of the correct option.",
            },
            "explanation": {
                "type": "string",
                "description": "Explanation in Korean why the answer is correct.",
            },
            "usageType": {
                "type": "string",
                "description": "One of: " + ", ".join(USAGE_TAGS),
            },
            "koreanTranslation": {
                "type": "string",
                "description": "Korean translation of the question sentence.",
            },
        },
        "required": list(QUESTION_FIELDS),
        "additionalProperties": False,
    }
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "present_perfect_questions",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {"questions": {"type": "array", "items": item}},
                "required": ["questions"],
                "additionalProperties": False,
            },
        },
    }


def parse_questions(text: str, *, strict: bool = False) -> List[Question]:
    """Parse model output into questions.

    Raises EmptyResponse for blank input and MalformedResponse for anything
    that is not JSON shaped like a question list. With ``strict`` each
    question must also pass :func:`validate_question`.
    """
    payload = strip_code_fence(text or "")
    if not payload:
        raise EmptyResponse()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"JSON 오류: {exc.msg}") from exc
    except (RecursionError, ValueError) as exc:
        raise MalformedResponse(
            f"JSON을 읽을 수 없습니다 ({type(exc).__name__})"
        ) from exc

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise MalformedResponse("문제 목록(JSON 배열)이 아닙니다")

    questions: List[Question] = []
    for position, record in enumerate(data, start=1):
        if not isinstance(record, dict):
            raise MalformedResponse(f"{position}번 문제가 객체가 아닙니다")
        question = Question.from_record(record)
        if strict:
            try:
                validate_question(question)
            except ValueError as exc:
                raise MalformedResponse(
                    f"{position}번 문제 ({question.id or '?'}): {exc}"
                ) from exc
        questions.append(question)
    return questions


def _is_auth_failure(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    if getattr(exc, "status_code", None) in (401, 403):
        return True
    return bool(_AUTH_RE.search(str(exc)))


def _default_client_factory(timeout: Optional[float]) -> ClientFactory:
    def factory(credential: ResolvedCredential) -> Any:
        return load_client(credential.value, timeout=timeout)

    return factory


class QuestionProvider:
    """Fetch one batch of questions per :meth:`generate` call."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 4096,
        strict_validation: bool = False,
        sources: Optional[Sequence[CredentialSource]] = None,
        client_factory: Optional[ClientFactory] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.strict_validation = strict_validation
        self.sources = list(sources) if sources is not None else default_sources()
        self.client_factory = client_factory or _default_client_factory(timeout)

    def generate(self, count: int, usage: UsageType) -> List[Question]:
        if count <= 0:
            raise ValueError("count must be a positive integer")

        credential = resolve_credential(self.sources)
        if credential is None:
            logger.warning("No API key found in any credential source")
            raise MissingCredential()
        logger.debug(
            "Resolved API key",
            extra={"credential_source": credential.source},
        )

        logger.info(
            "Requesting questions",
            extra={"model": self.model, "count": count, "usage": usage.name},
        )
        content = self._request(credential, build_prompt(count, usage))
        if not content or not content.strip():
            logger.warning("Model returned an empty body")
            raise EmptyResponse()

        try:
            questions = parse_questions(content, strict=self.strict_validation)
        except MalformedResponse as exc:
            logger.warning(
                "Could not parse model output",
                extra={"detail": exc.detail, "chars": len(content)},
            )
            raise
        logger.info("Received questions", extra={"received": len(questions)})
        return questions

    def _request(self, credential: ResolvedCredential, prompt: str) -> str:
        try:
            client = self.client_factory(credential)
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format=build_response_format(),
            )
        except Exception as exc:
            if _is_auth_failure(exc):
                logger.warning("API key rejected", extra={"error": str(exc)})
                raise InvalidCredential(str(exc)) from exc
            logger.warning("AI service call failed", extra={"error": str(exc)})
            raise ProviderUnavailable(str(exc)) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None) or ""

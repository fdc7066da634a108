"""Failures raised while generating a question batch.

Each error carries ``user_message``: the Korean text shown on the error
screen. Credential errors spell out the concrete fix because the quiz has no
other diagnostic surface.
"""

from __future__ import annotations

from typing import Optional, Sequence

from grammar_quiz.core.credentials import DOTENV_NAMES, ENV_NAMES, URL_PARAMS

__all__ = [
    "EmptyResponse",
    "GenerationError",
    "InvalidCredential",
    "InvalidTransition",
    "MalformedResponse",
    "MissingCredential",
    "ProviderUnavailable",
]


class GenerationError(RuntimeError):
    """Base class for provider failures; never retried automatically."""

    default_message = "문제를 불러오는 도중 오류가 발생했습니다. 다시 시도해주세요."

    def __init__(self, user_message: Optional[str] = None) -> None:
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


def _remediation_steps(
    env_names: Sequence[str] = ENV_NAMES,
    dotenv_names: Sequence[str] = DOTENV_NAMES,
    url_params: Sequence[str] = URL_PARAMS,
) -> str:
    url_hint = " 또는 ".join(f"?{name}=<API 키>" for name in url_params)
    return "\n".join(
        [
            "1. 환경 변수 {0} 중 하나에 API 키를 설정하세요.".format(
                ", ".join(env_names)
            ),
            "2. 또는 .env 파일에 {0} 값을 추가하세요.".format(
                " 또는 ".join(dotenv_names)
            ),
            f"3. 또는 실행 URL 끝에 {url_hint} 를 붙이세요 (--url 옵션).",
        ]
    )


class MissingCredential(GenerationError):
    def __init__(self, user_message: Optional[str] = None) -> None:
        super().__init__(
            user_message
            or "API 키를 찾을 수 없습니다. 다음 중 한 가지 방법으로 설정해주세요:\n"
            + _remediation_steps()
        )


class InvalidCredential(GenerationError):
    def __init__(
        self, detail: str = "", user_message: Optional[str] = None
    ) -> None:
        self.detail = detail
        super().__init__(
            user_message
            or "API 키가 거부되었습니다 (권한 없음). 키가 올바른지 확인한 뒤 "
            "다시 설정해주세요:\n" + _remediation_steps()
        )


class ProviderUnavailable(GenerationError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"AI 서비스에 연결하지 못했습니다: {detail}")


class EmptyResponse(GenerationError):
    default_message = "AI가 빈 응답을 보냈습니다. 잠시 후 다시 시도해주세요."


class MalformedResponse(GenerationError):
    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        message = "생성된 문제를 해석하지 못했습니다."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvalidTransition(RuntimeError):
    """Raised when a quiz command is not legal in the current phase."""

from .models import (
    QUESTION_FIELDS,
    USAGE_TAGS,
    Question,
    UsageType,
    validate_question,
)
from .errors import (
    EmptyResponse,
    GenerationError,
    InvalidCredential,
    InvalidTransition,
    MalformedResponse,
    MissingCredential,
    ProviderUnavailable,
)
from .provider import (
    QuestionProvider,
    build_prompt,
    build_response_format,
    parse_questions,
    strip_code_fence,
)
from .session import (
    ActivePhase,
    FailedPhase,
    FeedbackBand,
    FinishedPhase,
    LoadingPhase,
    QuizController,
    QuizSession,
    StartPhase,
    feedback_for,
)

__all__ = [
    "QUESTION_FIELDS",
    "USAGE_TAGS",
    "Question",
    "UsageType",
    "validate_question",
    "EmptyResponse",
    "GenerationError",
    "InvalidCredential",
    "InvalidTransition",
    "MalformedResponse",
    "MissingCredential",
    "ProviderUnavailable",
    "QuestionProvider",
    "build_prompt",
    "build_response_format",
    "parse_questions",
    "strip_code_fence",
    "ActivePhase",
    "FailedPhase",
    "FeedbackBand",
    "FinishedPhase",
    "LoadingPhase",
    "QuizController",
    "QuizSession",
    "StartPhase",
    "feedback_for",
]

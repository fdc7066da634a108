"""Question records and the Present Perfect usage vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

__all__ = [
    "QUESTION_FIELDS",
    "USAGE_TAGS",
    "Question",
    "UsageType",
    "validate_question",
]

# Wire names as requested from the model.
QUESTION_FIELDS: tuple[str, ...] = (
    "id",
    "text",
    "options",
    "correctAnswer",
    "explanation",
    "usageType",
    "koreanTranslation",
)


class UsageType(Enum):
    EXPERIENCE = ("경험", "Experience")
    CONTINUATION = ("계속", "Continuation")
    COMPLETION = ("완료", "Completion")
    RESULT = ("결과", "Result")
    MIXED = ("종합", "Mixed")

    def __init__(self, tag: str, english: str) -> None:
        self.tag = tag
        self.english = english

    @property
    def label(self) -> str:
        return f"{self.tag} ({self.english})"

    @classmethod
    def parse(cls, raw: str) -> "UsageType":
        """Accept a member name, English name, Korean tag or full label."""
        needle = raw.strip()
        for member in cls:
            if needle.lower() in (member.name.lower(), member.english.lower()):
                return member
            if needle in (member.tag, member.label):
                return member
        known = ", ".join(member.name.lower() for member in cls)
        raise ValueError(f"Unknown usage type '{raw}'. Known: {known}")


USAGE_TAGS: tuple[str, ...] = tuple(
    member.tag for member in UsageType if member is not UsageType.MIXED
)


@dataclass(frozen=True)
class Question:
    """One generated multiple-choice item."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str
    usage_type: str
    korean_translation: str

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Question":
        """Build from a camelCase record, coercing values to strings.

        Missing fields become empty strings; no invariant is checked here.
        """
        raw_options = record.get("options") or []
        if isinstance(raw_options, (str, bytes)) or not isinstance(
            raw_options, (list, tuple)
        ):
            raw_options = [raw_options]
        return cls(
            id=_as_text(record.get("id")),
            text=_as_text(record.get("text")),
            options=tuple(_as_text(option) for option in raw_options),
            correct_answer=_as_text(record.get("correctAnswer")),
            explanation=_as_text(record.get("explanation")),
            usage_type=_as_text(record.get("usageType")),
            korean_translation=_as_text(record.get("koreanTranslation")),
        )

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "text": self.text,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "usageType": self.usage_type,
            "koreanTranslation": self.korean_translation,
        }

    def is_correct(self, option: str) -> bool:
        return option == self.correct_answer


def validate_question(question: Question) -> None:
    """Check the per-question invariants.

    - every field non-empty
    - exactly 4 distinct options
    - the correct answer is one of the options
    Raises ValueError with an actionable message.
    """
    for name, value in (
        ("id", question.id),
        ("text", question.text),
        ("correctAnswer", question.correct_answer),
        ("explanation", question.explanation),
        ("usageType", question.usage_type),
        ("koreanTranslation", question.korean_translation),
    ):
        if not value.strip():
            raise ValueError(f"{name} must be non-empty")
    if len(question.options) != 4:
        raise ValueError(
            f"options must have exactly 4 entries, got {len(question.options)}"
        )
    if not all(option.strip() for option in question.options):
        raise ValueError("option text must be non-empty")
    if len(set(question.options)) != len(question.options):
        raise ValueError("duplicate options detected")
    if question.correct_answer not in question.options:
        raise ValueError("correctAnswer must match one of the options")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()

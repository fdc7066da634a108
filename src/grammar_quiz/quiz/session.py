"""Quiz session state and the phase controller driving it.

The controller is a small state machine over tagged phase objects:

    Start -> Loading -> Active -> Finished
                 \\-> Failed
    Finished | Failed -> Start (restart)

Session data only exists on the phases that need it (Active, Finished), so
the presentation layer never sees a half-initialized session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Dict, Optional, Protocol, Sequence, Union

from .errors import EmptyResponse, GenerationError, InvalidTransition
from .models import Question, UsageType

__all__ = [
    "ActivePhase",
    "FailedPhase",
    "FeedbackBand",
    "FinishedPhase",
    "LoadingPhase",
    "Phase",
    "QuestionSource",
    "QuizController",
    "QuizSession",
    "StartPhase",
    "feedback_for",
]

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    def generate(self, count: int, usage: UsageType) -> Sequence[Question]:
        ...


@dataclass
class QuizSession:
    """Mutable progress through one generated batch."""

    questions: tuple[Question, ...]
    current_index: int = 0
    score: int = 0
    answers: Dict[str, str] = field(default_factory=dict)
    correctness: Dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.questions = tuple(self.questions)
        if not self.questions:
            raise ValueError("a quiz session needs at least one question")

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> Question:
        return self.questions[self.current_index]

    @property
    def question_number(self) -> int:
        return self.current_index + 1

    @property
    def is_last_question(self) -> bool:
        return self.current_index == self.total - 1

    def answer_for(self, question: Optional[Question] = None) -> Optional[str]:
        target = question or self.current
        return self.answers.get(target.id)

    def is_answered(self, question: Optional[Question] = None) -> bool:
        target = question or self.current
        return target.id in self.answers

    def is_correct(self, question: Optional[Question] = None) -> Optional[bool]:
        """Correctness of the recorded answer, ``None`` when unanswered."""
        target = question or self.current
        return self.correctness.get(target.id)

    def submit(self, option: str) -> bool:
        """Record ``option`` for the current question.

        Returns False without touching any state when the question already
        has an answer; a question is answered at most once per session.
        """
        question = self.current
        if question.id in self.answers:
            return False
        correct = question.is_correct(option)
        self.answers[question.id] = option
        self.correctness[question.id] = correct
        if correct:
            self.score += 1
        return True

    def advance(self) -> bool:
        """Move to the next question; False when already on the last one."""
        if self.current_index + 1 < self.total:
            self.current_index += 1
            return True
        return False

    @property
    def ratio(self) -> Fraction:
        return Fraction(self.score, self.total)

    @property
    def percentage(self) -> Fraction:
        return self.ratio * 100

    def display_percentage(self) -> int:
        return round(self.percentage)

    @property
    def progress_ratio(self) -> Fraction:
        return Fraction(self.current_index, self.total)


class FeedbackBand(Enum):
    PERFECT = "완벽해요! 현재완료 마스터시군요! 🎉"
    STRONG = "아주 잘했어요! 조금만 더 하면 만점! 👍"
    ENCOURAGING = "잘하고 있어요! 틀린 문제를 다시 확인해보세요. 💪"
    SUPPORTIVE = "괜찮아요! 다시 한번 복습해볼까요? 🌱"

    @property
    def message(self) -> str:
        return self.value


def feedback_for(percentage: Fraction | float | int) -> FeedbackBand:
    if percentage >= 100:
        return FeedbackBand.PERFECT
    if percentage >= 80:
        return FeedbackBand.STRONG
    if percentage >= 60:
        return FeedbackBand.ENCOURAGING
    return FeedbackBand.SUPPORTIVE


@dataclass(frozen=True)
class StartPhase:
    name = "start"


@dataclass(frozen=True)
class LoadingPhase:
    count: int
    usage: UsageType
    name = "loading"


@dataclass(frozen=True)
class ActivePhase:
    session: QuizSession
    name = "active"


@dataclass(frozen=True)
class FinishedPhase:
    session: QuizSession
    name = "finished"

    @property
    def feedback(self) -> FeedbackBand:
        return feedback_for(self.session.percentage)


@dataclass(frozen=True)
class FailedPhase:
    message: str
    error: Optional[GenerationError] = None
    name = "failed"


Phase = Union[StartPhase, LoadingPhase, ActivePhase, FinishedPhase, FailedPhase]


class QuizController:
    """Owns the current phase; the only writer of quiz state."""

    def __init__(self, provider: QuestionSource) -> None:
        self.provider = provider
        self.phase: Phase = StartPhase()

    @property
    def session(self) -> Optional[QuizSession]:
        if isinstance(self.phase, (ActivePhase, FinishedPhase)):
            return self.phase.session
        return None

    def start(self, count: int, usage: UsageType) -> Phase:
        """Generate a batch and enter Active, or Failed on any provider error.

        Legal from Start, Finished and Failed. Blocks until the provider
        returns, so no second request can be in flight. Any other exception
        drops back to Start before propagating.
        """
        self.begin_loading(count, usage)
        try:
            questions = list(self.provider.generate(count, usage))
        except GenerationError as exc:
            return self.fail_loading(exc)
        except BaseException:
            self.abort_loading()
            raise
        return self.complete_loading(questions)

    def begin_loading(self, count: int, usage: UsageType) -> Phase:
        """Enter Loading without calling the provider.

        ``complete_loading``, ``fail_loading`` or ``abort_loading`` must
        follow; callers that fetch on another thread use this split.
        """
        if isinstance(self.phase, (LoadingPhase, ActivePhase)):
            raise InvalidTransition(
                f"cannot start a quiz while {self.phase.name}"
            )
        if not isinstance(self.phase, StartPhase):
            self.restart()
        self._enter(LoadingPhase(count=count, usage=usage))
        return self.phase

    def complete_loading(self, questions: Sequence[Question]) -> Phase:
        self._require_loading("accept questions")
        batch = tuple(questions)
        if not batch:
            return self.fail_loading(
                EmptyResponse("AI가 문제를 하나도 만들지 않았습니다. 다시 시도해주세요.")
            )
        self._enter(ActivePhase(session=QuizSession(batch)))
        return self.phase

    def fail_loading(self, error: GenerationError) -> Phase:
        self._require_loading("record a failure")
        logger.warning(
            "Question generation failed",
            extra={"error_kind": type(error).__name__},
        )
        self._enter(FailedPhase(message=error.user_message, error=error))
        return self.phase

    def abort_loading(self) -> Phase:
        """Leave Loading after an unexpected error so the quiz can start again."""
        self._require_loading("abort")
        logger.error("Question generation aborted")
        self._enter(StartPhase())
        return self.phase

    def submit_answer(self, option: str) -> bool:
        session = self._require_active("submit an answer")
        recorded = session.submit(option)
        if recorded:
            logger.debug(
                "Answer recorded",
                extra={
                    "question_id": session.current.id,
                    "correct": session.correctness[session.current.id],
                    "score": session.score,
                },
            )
        return recorded

    def advance(self) -> Phase:
        """Next question, or Finished after the last one.

        Unanswered questions may be skipped; disabling "next" until an
        answer is in is left to the presentation layer.
        """
        session = self._require_active("advance")
        if not session.advance():
            self._enter(FinishedPhase(session=session))
        return self.phase

    def restart(self) -> Phase:
        if isinstance(self.phase, (LoadingPhase, ActivePhase)):
            raise InvalidTransition(f"cannot restart while {self.phase.name}")
        if not isinstance(self.phase, StartPhase):
            self._enter(StartPhase())
        return self.phase

    def _require_active(self, action: str) -> QuizSession:
        if not isinstance(self.phase, ActivePhase):
            raise InvalidTransition(f"cannot {action} while {self.phase.name}")
        return self.phase.session

    def _require_loading(self, action: str) -> LoadingPhase:
        if not isinstance(self.phase, LoadingPhase):
            raise InvalidTransition(f"cannot {action} while {self.phase.name}")
        return self.phase

    def _enter(self, phase: Phase) -> None:
        logger.debug(
            "Phase transition",
            extra={"from_phase": self.phase.name, "to_phase": phase.name},
        )
        self.phase = phase

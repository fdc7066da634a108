from __future__ import annotations

import io

from rich.console import Console

from fixtures import make_question
from grammar_quiz.quiz.errors import MissingCredential
from grammar_quiz.quiz.models import UsageType
from grammar_quiz.quiz.session import FinishedPhase, QuizController
from grammar_quiz.view.console import (
    ConsoleCommand,
    parse_console_command,
    run_console_quiz,
)


class ScriptedProvider:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def generate(self, count, usage):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_inputs(commands: list[str]):
    iterator = iter(commands)

    def _provider() -> str:
        return next(iterator)

    return _provider


def recording_console() -> Console:
    return Console(file=io.StringIO(), record=True, width=100)


def test_parse_console_command_variants() -> None:
    question = make_question()
    assert parse_console_command("2", question) == ConsoleCommand(
        "answer", "has been"
    )
    assert parse_console_command(" HAVE BEEN ", question) == ConsoleCommand(
        "answer", "have been"
    )
    assert parse_console_command("n") == ConsoleCommand("next")
    assert parse_console_command("restart") == ConsoleCommand("restart")
    assert parse_console_command("q") == ConsoleCommand("quit")
    assert parse_console_command("5", question) is None
    assert parse_console_command("2") is None
    assert parse_console_command("   ") is None
    assert parse_console_command(None) is None


def test_console_quiz_full_flow() -> None:
    questions = [make_question(0), make_question(1)]
    controller = QuizController(ScriptedProvider(questions))
    console = recording_console()

    action = run_console_quiz(
        controller,
        console,
        make_inputs(["n", "1", "2", "n", "3", "n", "q"]),
        count=2,
        usage=UsageType.MIXED,
    )

    output = console.export_text()
    assert action == "quit"
    assert isinstance(controller.phase, FinishedPhase)
    assert controller.phase.session.score == 1
    assert "먼저 답을 골라주세요" in output
    assert "정답입니다!" in output
    assert "이미 답을 제출한 문제입니다" in output
    assert "아쉽네요!" in output
    assert "문제 2 / 2" in output
    assert "50점" in output
    assert "괜찮아요!" in output
    assert questions[0].korean_translation in output


def test_console_quiz_hides_translation_when_disabled() -> None:
    question = make_question(0)
    controller = QuizController(ScriptedProvider([question]))
    console = recording_console()

    run_console_quiz(
        controller,
        console,
        make_inputs(["q"]),
        count=1,
        usage=UsageType.EXPERIENCE,
        show_translation=False,
    )

    assert question.korean_translation not in console.export_text()


def test_console_quiz_error_then_restart() -> None:
    error = MissingCredential()
    provider = ScriptedProvider(error, [make_question(0)])
    controller = QuizController(provider)
    console = recording_console()

    action = run_console_quiz(
        controller,
        console,
        make_inputs(["n", "r", "1", "n", "q"]),
        count=1,
        usage=UsageType.MIXED,
    )

    output = console.export_text()
    assert action == "quit"
    assert "오류가 발생했습니다" in output
    assert "OPENAI_API_KEY" in output
    assert "r(다시 도전) 또는 q(종료)" in output
    assert "완벽해요!" in output
    assert provider.calls == 2
    assert isinstance(controller.phase, FinishedPhase)


def test_console_quiz_interrupted_by_input_exhaustion() -> None:
    controller = QuizController(ScriptedProvider([make_question(0)]))
    console = recording_console()

    action = run_console_quiz(
        controller,
        console,
        iter(()).__next__,
        count=1,
        usage=UsageType.MIXED,
    )

    assert action == "interrupted"
    assert "퀴즈를 중단했습니다" in console.export_text()


def test_console_quiz_unknown_input() -> None:
    controller = QuizController(ScriptedProvider([make_question(0)]))
    console = recording_console()

    run_console_quiz(
        controller,
        console,
        make_inputs(["???", "q"]),
        count=1,
        usage=UsageType.MIXED,
    )

    assert "알 수 없는 입력입니다" in console.export_text()

"""Rich-rendered console quiz loop.

The loop reads one command per prompt from ``input_provider`` so tests can
script a whole quiz. All state lives in the :class:`QuizController`; this
module only renders phases and turns text commands into controller calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from grammar_quiz.quiz.models import Question, UsageType
from grammar_quiz.quiz.session import (
    ActivePhase,
    FailedPhase,
    FinishedPhase,
    QuizController,
    QuizSession,
)

InputProvider = Callable[[], str]
ExitAction = Literal["quit", "interrupted"]

LOADING_MESSAGE = "AI 선생님이 맞춤형 문제를 출제 중입니다..."


@dataclass(frozen=True)
class ConsoleCommand:
    type: Literal["answer", "next", "restart", "quit"]
    option: Optional[str] = None


def parse_console_command(
    raw: Optional[str], question: Optional[Question] = None
) -> Optional[ConsoleCommand]:
    """Map user input to a command.

    Digits pick an option by position and the exact option text is also
    accepted while a question is shown.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return ConsoleCommand("next")
    if lowered in {"r", "restart", "retry"}:
        return ConsoleCommand("restart")
    if lowered in {"q", "quit", "exit"}:
        return ConsoleCommand("quit")
    if question is None:
        return None
    if text.isdigit():
        position = int(text)
        if 1 <= position <= len(question.options):
            return ConsoleCommand("answer", question.options[position - 1])
        return None
    for option in question.options:
        if option.lower() == lowered:
            return ConsoleCommand("answer", option)
    return None


def run_console_quiz(
    controller: QuizController,
    console: Console,
    input_provider: InputProvider,
    *,
    count: int,
    usage: UsageType,
    show_translation: bool = True,
) -> ExitAction:
    """Run quizzes until the user quits or input runs out."""

    _start(controller, console, count, usage)
    while True:
        phase = controller.phase
        if isinstance(phase, ActivePhase):
            _render_question(console, phase.session, show_translation)
        elif isinstance(phase, FinishedPhase):
            _render_result(console, phase)
        elif isinstance(phase, FailedPhase):
            _render_error(console, phase)

        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]퀴즈를 중단했습니다.[/]")
            return "interrupted"

        question = (
            phase.session.current if isinstance(phase, ActivePhase) else None
        )
        command = parse_console_command(raw, question)
        if command is None:
            console.print("[red]알 수 없는 입력입니다. 다시 입력해주세요.[/]")
            continue
        if command.type == "quit":
            console.print("[bold yellow]퀴즈를 종료합니다.[/]")
            return "quit"
        if isinstance(phase, ActivePhase):
            _apply_active_command(controller, console, phase.session, command)
        elif command.type == "restart":
            controller.restart()
            _start(controller, console, count, usage)
        else:
            console.print("[red]r(다시 도전) 또는 q(종료)를 입력해주세요.[/]")


def _start(
    controller: QuizController,
    console: Console,
    count: int,
    usage: UsageType,
) -> None:
    with console.status(LOADING_MESSAGE):
        controller.start(count, usage)


def _apply_active_command(
    controller: QuizController,
    console: Console,
    session: QuizSession,
    command: ConsoleCommand,
) -> None:
    if command.type == "answer" and command.option is not None:
        question = session.current
        if not controller.submit_answer(command.option):
            console.print("[yellow]이미 답을 제출한 문제입니다.[/]")
            return
        _render_feedback(console, question, command.option)
        return
    if command.type == "next":
        if not session.is_answered():
            console.print("[yellow]먼저 답을 골라주세요.[/]")
            return
        controller.advance()
        return
    console.print("[red]번호(1-4) 또는 n(다음)을 입력해주세요.[/]")


def _render_question(
    console: Console, session: QuizSession, show_translation: bool
) -> None:
    question = session.current
    header = Text.assemble(
        (f"Q. {session.question_number}", "bold cyan"),
        (f"  문제 {session.question_number} / {session.total}", "dim"),
        (f"  점수: {session.score}", "magenta"),
    )
    console.print()
    console.rule(header)
    console.print(Text(f"[{question.usage_type}]", style="bold blue"))
    console.print(Text(question.text, style="bold"))
    if show_translation and question.korean_translation:
        console.print(Text(question.korean_translation, style="dim"))

    selected = session.answer_for(question)
    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("No", justify="center", style="cyan")
    table.add_column("Option")
    for position, option in enumerate(question.options, start=1):
        label = Text(option)
        if selected is not None:
            if option == question.correct_answer:
                label.stylize("bold green")
            elif option == selected:
                label.stylize("bold red")
        table.add_row(str(position), label)
    console.print(table)

    if session.is_answered(question):
        hint = "결과 보기: n" if session.is_last_question else "다음 문제: n"
    else:
        hint = "번호(1-{0})를 입력하세요".format(len(question.options))
    console.print(Text(f"{hint} | 종료: q", style="dim"))


def _render_feedback(console: Console, question: Question, option: str) -> None:
    correct = question.is_correct(option)
    title = "정답입니다!" if correct else "아쉽네요!"
    body = question.explanation
    if not correct:
        body = f"정답: {question.correct_answer}\n\n{body}"
    console.print(
        Panel(
            Text(body), title=title, border_style="green" if correct else "red"
        )
    )


def _render_result(console: Console, phase: FinishedPhase) -> None:
    session = phase.session
    console.print()
    console.rule(Text("퀴즈 완료!", style="bold magenta"))
    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("문제 수", str(session.total))
    overview.add_row("맞힌 문제", str(session.score))
    overview.add_row("점수", f"{session.display_percentage()}점")
    console.print(overview)
    console.print(Panel(phase.feedback.message, border_style="cyan"))
    console.print(Text("다시 도전: r | 종료: q", style="dim"))


def _render_error(console: Console, phase: FailedPhase) -> None:
    console.print(
        Panel(
            Text(phase.message),
            title="오류가 발생했습니다",
            border_style="red",
        )
    )
    console.print(Text("처음으로 돌아가 다시 시도: r | 종료: q", style="dim"))

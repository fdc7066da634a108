from typing import List, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widget import Widget
from textual.widgets import Button, Static
from textual.worker import Worker, WorkerState

from grammar_quiz.quiz.errors import GenerationError
from grammar_quiz.quiz.models import UsageType
from grammar_quiz.quiz.session import (
    ActivePhase,
    FailedPhase,
    FinishedPhase,
    LoadingPhase,
    QuizController,
    QuizSession,
)

LOADING_MESSAGE = "AI 선생님이 맞춤형 문제를 출제 중입니다..."


class QuizApp(App):
    CSS_PATH = None
    CSS = """
#stage { padding: 1 2; }
#options Button { width: 100%; margin-bottom: 1; }
#options Button.selected { background: $accent; }
#options Button.correct { background: $success; }
#options Button.wrong { background: $error; }
#feedback { margin-top: 1; }
"""
    BINDINGS = [
        ("1", "select_option(1)", "Option 1"),
        ("2", "select_option(2)", "Option 2"),
        ("3", "select_option(3)", "Option 3"),
        ("4", "select_option(4)", "Option 4"),
        ("enter", "check", "Check"),
        ("n", "next", "Next"),
        ("r", "restart", "Restart"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        controller: QuizController,
        *,
        count: int = 5,
        show_translation: bool = True,
    ) -> None:
        super().__init__()
        self.controller = controller
        self.count = count
        self.show_translation = show_translation
        self._pending: Optional[str] = None

    def compose(self) -> ComposeResult:
        with Container(id="stage"):
            yield from self.stage_widgets()

    # Pure helpers below are testable without running the App.
    def stage_widgets(self) -> List[Widget]:
        phase = self.controller.phase
        if isinstance(phase, LoadingPhase):
            return [
                Static(LOADING_MESSAGE, id="loading"),
                Static("잠시만 기다려주세요...", id="loading-hint"),
            ]
        if isinstance(phase, ActivePhase):
            return self._question_widgets(phase.session)
        if isinstance(phase, FinishedPhase):
            session = phase.session
            return [
                Static("퀴즈 완료!", id="result-title"),
                Static(f"{session.display_percentage()}점", id="result-score"),
                Static(phase.feedback.message, id="result-feedback"),
                Button("다시 도전하기", id="restart"),
            ]
        if isinstance(phase, FailedPhase):
            return [
                Static("오류가 발생했습니다", id="error-title"),
                Static(Text(phase.message), id="error-message"),
                Button("처음으로 돌아가기", id="restart"),
            ]
        widgets: List[Widget] = [
            Static("중3 현재완료 완전 정복", id="title"),
            Static("'have + p.p.'의 4가지 용법을 마스터해볼까요?", id="subtitle"),
        ]
        for usage in UsageType:
            widgets.append(
                Button(
                    f"{usage.label} · {self.count}문제 풀기",
                    id=f"usage-{usage.name.lower()}",
                )
            )
        return widgets

    def start_quiz(self, usage: UsageType) -> None:
        self._pending = None
        self.controller.begin_loading(self.count, usage)
        self.run_worker(
            lambda: self._fetch_questions(usage),
            thread=True,
            exclusive=True,
        )
        self._refresh_stage()

    def _fetch_questions(self, usage: UsageType) -> None:
        # Worker thread: the controller is only touched via call_from_thread.
        try:
            questions = list(
                self.controller.provider.generate(self.count, usage)
            )
        except GenerationError as exc:
            self.call_from_thread(self.controller.fail_loading, exc)
        except BaseException:
            self.call_from_thread(self.controller.abort_loading)
            raise
        else:
            self.call_from_thread(self.controller.complete_loading, questions)

    def select_option(self, position: int) -> bool:
        phase = self.controller.phase
        if not isinstance(phase, ActivePhase) or phase.session.is_answered():
            return False
        options = phase.session.current.options
        if not 1 <= position <= len(options):
            return False
        self._pending = options[position - 1]
        self._refresh_stage()
        return True

    def check_answer(self) -> bool:
        if self._pending is None:
            return False
        recorded = self.controller.submit_answer(self._pending)
        self._refresh_stage()
        return recorded

    def next_question(self) -> bool:
        phase = self.controller.phase
        if not isinstance(phase, ActivePhase) or not phase.session.is_answered():
            return False
        self.controller.advance()
        self._pending = None
        self._refresh_stage()
        return True

    def restart_quiz(self) -> None:
        self.controller.restart()
        self._pending = None
        self._refresh_stage()

    def _question_widgets(self, session: QuizSession) -> List[Widget]:
        question = session.current
        answered = session.answer_for(question)
        widgets: List[Widget] = [
            Static(
                f"Q. {session.question_number}  ·  문제 {session.question_number}"
                f" / {session.total}  ·  점수: {session.score}",
                id="progress",
            ),
            Static(Text(f"[{question.usage_type}] 중3 필수 문법"), id="usage"),
            Static(Text(question.text), id="question"),
        ]
        if self.show_translation:
            widgets.append(Static(Text(question.korean_translation), id="translation"))

        buttons: List[Widget] = []
        for position, option in enumerate(question.options, start=1):
            button = Button(
                Text(option),
                id=f"option-{position}",
                disabled=answered is not None,
            )
            if answered is not None:
                if option == question.correct_answer:
                    button.add_class("correct")
                elif option == answered:
                    button.add_class("wrong")
            elif option == self._pending:
                button.add_class("selected")
            buttons.append(button)
        widgets.append(Vertical(*buttons, id="options"))

        if answered is None:
            widgets.append(
                Button(
                    "정답 확인하기",
                    id="check",
                    disabled=self._pending is None,
                )
            )
        else:
            verdict = "정답입니다!" if question.is_correct(answered) else "아쉽네요!"
            widgets.append(
                Static(Text(f"{verdict}\n{question.explanation}"), id="feedback")
            )
            label = "결과 보기" if session.is_last_question else "다음 문제"
            widgets.append(Button(label, id="next"))
        return widgets

    def _refresh_stage(self) -> None:
        if not self.is_running:
            return
        stage = self.query_one("#stage", Container)
        stage.remove_children()
        stage.mount(*self.stage_widgets())

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.state in (WorkerState.SUCCESS, WorkerState.ERROR):
            self._refresh_stage()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("usage-"):
            self.start_quiz(UsageType.parse(bid[len("usage-"):]))
        elif bid.startswith("option-"):
            self.select_option(int(bid[len("option-"):]))
        elif bid == "check":
            self.check_answer()
        elif bid == "next":
            self.next_question()
        elif bid == "restart":
            self.restart_quiz()

    def action_select_option(self, position: int) -> None:
        self.select_option(position)

    def action_check(self) -> None:
        self.check_answer()

    def action_next(self) -> None:
        self.next_question()

    def action_restart(self) -> None:
        if isinstance(self.controller.phase, (FinishedPhase, FailedPhase)):
            self.restart_quiz()

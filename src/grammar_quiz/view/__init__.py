from .console import parse_console_command, run_console_quiz
from .app import QuizApp

__all__ = [
    "parse_console_command",
    "run_console_quiz",
    "QuizApp",
]

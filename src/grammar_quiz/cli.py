"""Command-line entry point for ``grammar-quiz``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from grammar_quiz.core import workspace as workspace_mod
from grammar_quiz.core.config import (
    CONFIG_FILENAME,
    AppConfig,
    ConfigError,
    load_config,
    write_config_template,
)
from grammar_quiz.core.credentials import default_sources
from grammar_quiz.core.logging import configure_logger
from grammar_quiz.core.workspace import WorkspaceError
from grammar_quiz.quiz.models import UsageType
from grammar_quiz.quiz.provider import QuestionProvider
from grammar_quiz.quiz.session import QuizController


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grammar-quiz",
        description=(
            "Practice the English Present Perfect with AI-generated "
            "multiple-choice questions."
        ),
        epilog=(
            "Other commands: `grammar-quiz usages` lists usage filters, "
            "`grammar-quiz config init` writes a config template."
        ),
    )
    parser.add_argument(
        "--usage",
        help=(
            "Usage filter: experience, continuation, completion, result or "
            "mixed (defaults to quiz.default_usage)."
        ),
    )
    parser.add_argument(
        "--count",
        type=int,
        help="Number of questions (defaults to quiz.question_count).",
    )
    parser.add_argument(
        "--url",
        help="Launch URL; a ?key= or ?apiKey= parameter supplies the API key.",
    )
    parser.add_argument("--config", type=Path, help="Path to a config TOML.")
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root used for config and logs.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject generated questions that break the 4-option rules.",
    )
    parser.add_argument(
        "--tui", action="store_true", help="Use the Textual interface."
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Echo logs to stderr."
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:])
    if args_list[:1] == ["usages"]:
        return _handle_usages()

    parser = build_arg_parser()
    args = parser.parse_args(args_list)

    try:
        config = load_config(args.config, workspace_path=args.workspace)
        usage = (
            UsageType.parse(args.usage)
            if args.usage
            else config.quiz.default_usage
        )
        count = args.count if args.count is not None else config.quiz.question_count
        if count <= 0:
            raise ValueError("--count must be a positive integer")
        layout = workspace_mod.ensure_workspace(path=args.workspace)
    except (ConfigError, WorkspaceError, ValueError) as exc:
        _print_error(f"Error: {exc}")
        return 2

    verbose = args.verbose or config.logging.verbose
    logger, log_path = configure_logger(
        "grammar_quiz",
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=verbose,
    )
    logger.info(
        "Starting quiz",
        extra={
            "usage": usage.name,
            "count": count,
            "config_source": config.source,
            "interface": "tui" if args.tui else "console",
        },
    )

    controller = QuizController(
        _build_provider(config, url=args.url, strict=args.strict)
    )
    if args.tui:
        from grammar_quiz.view.app import QuizApp

        QuizApp(
            controller,
            count=count,
            show_translation=config.quiz.show_translation,
        ).run()
        return 0

    from grammar_quiz.view.console import run_console_quiz

    console = Console()
    exit_action = run_console_quiz(
        controller,
        console,
        lambda: console.input("[bold]> [/]"),
        count=count,
        usage=usage,
        show_translation=config.quiz.show_translation,
    )
    logger.info("Quiz closed", extra={"exit_action": exit_action})
    if verbose:
        console.print(f"[dim]Log file: {log_path}[/]")
    return 0


def _build_provider(
    config: AppConfig, *, url: Optional[str], strict: bool
) -> QuestionProvider:
    return QuestionProvider(
        model=config.ai.model,
        temperature=config.ai.temperature,
        max_tokens=config.ai.max_tokens,
        strict_validation=strict or config.quiz.strict_validation,
        sources=default_sources(url=url),
        timeout=config.ai.request_timeout_seconds,
    )


def _handle_usages() -> int:
    for usage in UsageType:
        print(f"{usage.name.lower():<13} {usage.label}")
    return 0


def _handle_config(argv: Sequence[str]) -> int:
    parser = argparse.ArgumentParser(
        prog="grammar-quiz config",
        description="Manage the grammar-quiz configuration file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    init_parser = subparsers.add_parser(
        "init", help="Write the default grammar_quiz.toml template."
    )
    init_parser.add_argument(
        "--path",
        type=Path,
        help="Destination (defaults to the workspace config directory).",
    )
    init_parser.add_argument(
        "--workspace", type=Path, help="Workspace root override."
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination if it already exists.",
    )
    args = parser.parse_args(argv)

    try:
        if args.path is not None:
            target = args.path.expanduser().absolute()
        else:
            layout = workspace_mod.ensure_workspace(path=args.workspace)
            target = layout.path_for("config") / CONFIG_FILENAME
        written = write_config_template(target, overwrite=args.force)
    except (ConfigError, WorkspaceError) as exc:
        _print_error(f"Error: {exc}")
        return 2

    sys.stdout.write(f"Wrote grammar-quiz config to {written}\n")
    return 0


def _print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())

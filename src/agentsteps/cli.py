"""Command line interface for the agentsteps tutorials."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ConfigError, StepsConfig
from .llm.prompt import TemplateError
from .llm.provider import ChatModel, ModelError
from .steps import STEPS, openai_model_factory
from .tasks.base import BatchResult, TaskParseError
from .tasks.runner import ParallelDispatcher
from .tools.base import error_payload

app = typer.Typer(help="Step-by-step chat, tool-calling, ReAct and parallel agent tutorials")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_path: Optional[Path]) -> StepsConfig:
    if config_path is None:
        return StepsConfig.default()
    return StepsConfig.from_file(config_path)


def build_model(config: StepsConfig) -> ChatModel:
    """Create the chat client; the credential is read from the process environment here only."""

    return openai_model_factory(os.environ)(config)


def _run_step(step: str, config_path: Optional[Path], verbose: bool) -> None:
    _configure_logging(verbose)
    try:
        config = _load_config(config_path)
        model = build_model(config)
        console.print(f"[bold green]{step}[/] via {config.client.model} @ {config.client.base_url}")
        failures = STEPS[step](config, model, console)
    except (ConfigError, ModelError, TemplateError) as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1) from exc
    if failures:
        console.print(f"[yellow]{failures} scenario(s) skipped after errors[/]")


@app.command()
def chat(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Step 1: render a prompt template and call the model."""

    _run_step("chat", config_path, verbose)


@app.command()
def tools(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Step 2: bind a calculator tool and run a model -> tool node chain."""

    _run_step("tools", config_path, verbose)


@app.command()
def react(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Step 3: ReAct agent with weather and clock tools, plus streaming."""

    _run_step("react", config_path, verbose)


@app.command()
def parallel(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Step 4: project director fanning work out to parallel agents."""

    _run_step("parallel", config_path, verbose)


def _render_batch(result: BatchResult) -> None:
    table = Table(title=result.task, show_lines=True)
    table.add_column("Agent")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Result")
    for report in result.reports:
        colour = "green" if report.succeeded else "red"
        table.add_row(
            report.agent_name,
            report.task,
            f"[{colour}]{report.status.value}[/]",
            f"{report.duration_ms:.0f}",
            report.result,
        )
    console.print(table)
    console.print(f"[bold]{result.summary}[/]")


@app.command()
def dispatch(
    tasks_file: str = typer.Argument(..., help="JSON task list file, or '-' for stdin"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML configuration"),
    as_json: bool = typer.Option(False, "--json", help="Print the batch result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run the parallel task dispatcher on a JSON task list, without a model."""

    _configure_logging(verbose)
    try:
        config = _load_config(config_path)
        payload = sys.stdin.read() if tasks_file == "-" else Path(tasks_file).read_text()
    except (ConfigError, OSError) as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1) from exc

    try:
        result = ParallelDispatcher(config.dispatch).run_payload(payload)
    except TaskParseError as exc:
        typer.echo(error_payload(f"invalid task list: {exc}"))
        raise typer.Exit(code=1) from exc

    if as_json:
        typer.echo(result.to_json())
    else:
        _render_batch(result)


if __name__ == "__main__":  # pragma: no cover
    app()

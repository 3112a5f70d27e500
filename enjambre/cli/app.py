"""Typer CLI for enjambre."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from enjambre.config import CONFIG_FILENAME, PROVIDER_DEFS, AdapterConfig, Settings
from enjambre.errors import ConfigurationError
from enjambre.swarm.types import TaskKind

console = Console()
app = typer.Typer(
    name="enjambre",
    help="Generation swarm: route tasks to LLM backends, verify, refine, learn.",
    add_completion=False,
    no_args_is_help=True,
)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _resolve_settings(
    cwd: str,
    backend: str | None = None,
    model: str | None = None,
    max_attempts: int | None = None,
    timeout: float | None = None,
    concurrency: int | None = None,
    threshold: float | None = None,
    log_level: str | None = None,
) -> Settings:
    """Load .enjambre.yml + env, then apply CLI flag overrides."""
    from enjambre.config import load_settings

    try:
        settings = load_settings(str(Path(cwd).resolve()))

        swarm_overrides: dict[str, object] = {}
        if backend:
            swarm_overrides["default_adapter"] = backend
            if backend not in settings.adapters:
                provider = PROVIDER_DEFS.get(backend, {})
                settings.adapters[backend] = AdapterConfig(api_key_env=provider.get("env_var"))
        if concurrency is not None:
            swarm_overrides["max_concurrent_tasks"] = concurrency
        if threshold is not None:
            swarm_overrides["quality_threshold"] = threshold
        if swarm_overrides:
            settings.swarm = dataclasses.replace(settings.swarm, **swarm_overrides)

        target = settings.swarm.default_adapter
        adapter_overrides: dict[str, object] = {}
        if model:
            adapter_overrides["model"] = model
        if max_attempts is not None:
            adapter_overrides["max_attempts"] = max_attempts
        if timeout is not None:
            adapter_overrides["timeout_seconds"] = timeout
        if adapter_overrides and target in settings.adapters:
            settings.adapters[target] = dataclasses.replace(
                settings.adapters[target], **adapter_overrides
            )
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _configure_logging(log_level or settings.log_level)

    if not settings.adapters:
        console.print(
            "[bold red]No adapters configured.[/bold red]\n"
            f"Run [bold]enjambre init[/bold] to create {CONFIG_FILENAME}, set "
            "[bold]GEMINI_API_KEY[/bold], or pass [bold]--backend echo[/bold] for a dry run."
        )
        raise typer.Exit(code=1)
    return settings


@app.command()
def run(
    description: str = typer.Argument(..., help="What to generate"),
    kind: TaskKind = typer.Option(
        TaskKind.CODE_GENERATION, "--kind", "-k", help="Task kind", case_sensitive=False
    ),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory (default: current dir)"),
    backend: str | None = typer.Option(
        None, "--backend", "-b", help="Adapter to use (e.g. gemini, openai, echo)"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Backend model (LiteLLM format)"),
    language: str | None = typer.Option(
        None, "--language", "-l", help="Preferred output language for code tasks"
    ),
    max_attempts: int | None = typer.Option(
        None, "--max-attempts", "-n", help="Maximum generate/verify attempts"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Per-attempt timeout in seconds"
    ),
    threshold: float | None = typer.Option(
        None, "--threshold", help="Quality threshold in [0, 1]"
    ),
    deadline: float | None = typer.Option(
        None, "--deadline", help="Overall deadline in seconds; the task is cancelled on expiry"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Run one task through the swarm.

    Examples:
        enjambre run "parse a CSV file into dataclasses"
        enjambre run "Predecir ventas del próximo trimestre" --kind forecasting
        enjambre run "hello world" --backend echo
    """
    from enjambre.swarm.tasks import TaskBuilder

    settings = _resolve_settings(
        cwd,
        backend=backend,
        model=model,
        max_attempts=max_attempts,
        timeout=timeout,
        threshold=threshold,
        log_level=log_level,
    )

    task = TaskBuilder.for_kind(kind, description)
    if language:
        task.preferred_language = language
    if threshold is not None:
        task.quality_threshold = threshold
    if deadline is not None:
        task.max_execution_seconds = deadline

    console.print(
        Panel(
            f"[bold cyan]enjambre run[/bold cyan]  🐝\n\n"
            f"[bold]{description}[/bold]\n\n"
            f"[dim]kind={task.kind}  backend={settings.swarm.default_adapter}[/dim]",
            border_style="cyan",
        )
    )

    from enjambre.cli.runners import run_task

    exit_code = asyncio.run(run_task(settings, task))
    raise typer.Exit(code=exit_code)


@app.command()
def swarm(
    descriptions: list[str] = typer.Argument(..., help="One or more task descriptions"),
    kind: TaskKind = typer.Option(
        TaskKind.GENERAL, "--kind", "-k", help="Task kind for every task", case_sensitive=False
    ),
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="Adapter to use"),
    model: str | None = typer.Option(None, "--model", "-m", help="Backend model"),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-j", help="Maximum tasks in flight"
    ),
    deadline: float | None = typer.Option(
        None, "--deadline", help="Per-task deadline in seconds"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Run several tasks concurrently and report swarm statistics.

    Examples:
        enjambre swarm "sort a list" "reverse a string" --kind code-generation
        enjambre swarm "a" "b" "c" "d" --concurrency 2 --backend echo
    """
    from enjambre.swarm.tasks import TaskBuilder

    settings = _resolve_settings(
        cwd, backend=backend, model=model, concurrency=concurrency, log_level=log_level
    )
    tasks = [TaskBuilder.for_kind(kind, d) for d in descriptions]

    console.print(
        Panel(
            f"[bold cyan]enjambre swarm[/bold cyan]  🐝\n\n"
            f"[bold]{len(tasks)} task(s)[/bold]\n\n"
            f"[dim]concurrency={settings.swarm.max_concurrent_tasks}  "
            f"backend={settings.swarm.default_adapter}[/dim]",
            border_style="cyan",
        )
    )

    from enjambre.cli.runners import run_many

    exit_code = asyncio.run(run_many(settings, tasks, deadline=deadline))
    raise typer.Exit(code=exit_code)


@app.command()
def strategies(
    description: str | None = typer.Argument(
        None, help="Optional task description to rank the catalog against"
    ),
    kind: TaskKind = typer.Option(
        TaskKind.GENERAL, "--kind", "-k", help="Task kind", case_sensitive=False
    ),
) -> None:
    """Show the strategy catalog, optionally ranked for a description."""
    from enjambre.swarm.selector import StrategySelector
    from enjambre.swarm.strategies import DEFAULT_CATALOG, get_all_strategies_info
    from enjambre.swarm.types import Task

    table = Table(title="Strategy catalog")
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Base score", justify="right")
    table.add_column("Kinds")
    table.add_column("Description")
    for info in get_all_strategies_info():
        table.add_row(
            info["tag"],
            f"{info['base_score']:.2f}",
            ", ".join(info["kinds"]),
            info["description"],
        )
    console.print(table)

    if description is None:
        return

    ranking = StrategySelector(DEFAULT_CATALOG).rank(Task(description=description, kind=kind))
    ranked = Table(title=f"Ranking for: {description[:60]}")
    ranked.add_column("#", justify="right", style="dim")
    ranked.add_column("Strategy", style="cyan", no_wrap=True)
    ranked.add_column("Affinity", justify="right")
    ranked.add_column("Score", justify="right")
    for i, scored in enumerate(ranking, 1):
        ranked.add_row(
            str(i), str(scored.spec.tag), f"{scored.affinity:.1f}", f"{scored.score:.3f}"
        )
    console.print(ranked)


@app.command()
def health(
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="Also check this adapter"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Check that every configured adapter is reachable."""
    settings = _resolve_settings(cwd, backend=backend, log_level=log_level)

    from enjambre.cli.runners import run_health

    exit_code = asyncio.run(run_health(settings))
    raise typer.Exit(code=exit_code)


@app.command()
def init(
    cwd: str = typer.Option(".", "--cwd", "-C", help="Project directory"),
    adapter: str = typer.Option(
        "gemini", "--adapter", "-a", help=f"Default adapter ({', '.join(PROVIDER_DEFS)})"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Scaffold a .enjambre.yml config file in the project directory."""
    import yaml

    from enjambre.config import render_config_template

    if adapter not in PROVIDER_DEFS:
        console.print(
            f"[red]Unknown adapter '{adapter}'.[/red] "
            f"Available: [bold]{', '.join(PROVIDER_DEFS)}[/bold]"
        )
        raise typer.Exit(code=1)

    config_path = Path(cwd).resolve() / CONFIG_FILENAME
    if config_path.exists() and not force:
        console.print(
            f"[yellow]{config_path} already exists.[/yellow] "
            "Pass [bold]--force[/bold] to overwrite."
        )
        raise typer.Exit(code=1)

    config = render_config_template(adapter)
    config_path.write_text(yaml.dump(config, default_flow_style=False, sort_keys=False))

    env_var = PROVIDER_DEFS[adapter].get("env_var")
    hint = f"Set [bold]{env_var}[/bold] in your environment or .env.\n" if env_var else ""
    console.print(
        Panel(
            Text.from_markup(
                f"[bold green]✓ Created[/bold green] [bold]{config_path}[/bold]\n\n"
                f"  default_adapter: [cyan]{adapter}[/cyan]\n"
                f"  model:           [cyan]{PROVIDER_DEFS[adapter]['default_model']}[/cyan]\n\n"
                f"{hint}"
                "Run [bold]enjambre run \"<task>\"[/bold] to start."
            ),
            border_style="green",
            title="enjambre init",
        )
    )

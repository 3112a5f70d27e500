"""Async runner functions for CLI commands (no Typer coupling)."""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from enjambre.errors import ConfigurationError

if TYPE_CHECKING:
    from enjambre.config import Settings
    from enjambre.swarm.orchestrator import SwarmOrchestrator
    from enjambre.swarm.types import AttemptResult, Stats, Task, TaskResult

console = Console()

_OUTCOME_COLORS = {
    "succeeded": "green",
    "failed": "red",
    "cancelled": "yellow",
}


async def _start(settings: Settings) -> SwarmOrchestrator | None:
    from enjambre.swarm.orchestrator import SwarmOrchestrator

    orchestrator = SwarmOrchestrator(settings.swarm)
    try:
        await orchestrator.initialize(settings.adapters)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        return None
    return orchestrator


def _attempts_table(history: Sequence[AttemptResult]) -> Table:
    table = Table(title="Attempts", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Quality", justify="right")
    table.add_column("Accepted")
    table.add_column("Next")
    table.add_column("Time", justify="right", style="dim")
    table.add_column("Reason", overflow="fold")
    for att in history:
        table.add_row(
            str(att.attempt),
            f"{att.quality:.2f}",
            "[green]✓[/green]" if att.accepted else "[red]✗[/red]",
            str(att.status or ""),
            f"{att.duration_seconds:.2f}s",
            str(att.reason) if att.reason else "",
        )
    return table


def _render_result(result: TaskResult) -> None:
    from enjambre.swarm.strategies import get_strategy

    spec = get_strategy(result.strategy_used) if result.strategy_used else None
    color = _OUTCOME_COLORS.get(str(result.outcome), "red")
    info_parts = [
        f"Strategy: [bold]{result.strategy_used or '-'}[/bold]",
        f"Backend: [bold]{result.backend or '-'}[/bold]",
        f"Attempts: [bold]{result.attempts}[/bold]",
        f"Quality: [bold]{result.quality:.2f}[/bold]",
        f"Time: [bold]{result.execution_time_ms / 1000:.1f}s[/bold]",
    ]
    body = ""
    if result.result is not None:
        body = result.result.content
    elif result.error:
        body = f"[red]{result.error}[/red]"
    console.print(
        Panel(
            f"[bold {color}]{str(result.outcome).upper()}[/bold {color}]\n\n"
            f"{body}\n\n" + "  ·  ".join(info_parts),
            border_style=color,
            title=f"[bold]Task {result.task_id[:8]}[/bold]",
            subtitle=f"[dim]{spec.description}[/dim]" if spec else None,
        )
    )


def render_stats(stats: Stats) -> None:
    table = Table(title=f"Swarm stats · session {stats.session_id[:8]}")
    table.add_column("Strategy")
    table.add_column("Successes", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Learned weight", justify="right")
    for tag, weight in stats.learned_weights.items():
        table.add_row(
            tag,
            str(stats.strategy_successes.get(tag, 0)),
            str(stats.strategy_totals.get(tag, 0)),
            f"{weight:.3f}",
        )
    console.print(table)
    console.print(
        f"  tasks=[bold]{stats.total_tasks}[/bold]  "
        f"succeeded=[green]{stats.successful_tasks}[/green]  "
        f"failed=[red]{stats.failed_tasks}[/red]  "
        f"cancelled=[yellow]{stats.cancelled_tasks}[/yellow]  "
        f"success-rate=[bold]{stats.success_rate:.0%}[/bold]  "
        f"avg-quality=[bold]{stats.average_quality:.2f}[/bold]"
    )


def _render_alerts(orchestrator: SwarmOrchestrator) -> None:
    report = orchestrator.performance_report()
    if report is None or not report.alerts:
        return
    for alert in report.alerts:
        console.print(f"[yellow]⚠ {alert.severity.upper()}:[/yellow] {alert.message}")
    for tip in report.recommendations:
        console.print(f"  [dim]→ {tip}[/dim]")


async def run_task(settings: Settings, task: Task, deadline: float | None = None) -> int:
    """Run a single task and render its attempts and outcome."""
    orchestrator = await _start(settings)
    if orchestrator is None:
        return 1

    console.print("\n[bold blue]Running task…[/bold blue]")
    result = await orchestrator.execute_task(task, deadline=deadline)

    if result.history:
        console.print(_attempts_table(result.history))
    _render_result(result)
    _render_alerts(orchestrator)
    return 0 if result.success else 1


async def run_many(settings: Settings, tasks: Sequence[Task], deadline: float | None = None) -> int:
    """Run tasks concurrently and print a per-task summary plus stats."""
    orchestrator = await _start(settings)
    if orchestrator is None:
        return 1

    console.print(
        f"\n[bold blue]Dispatching {len(tasks)} task(s)[/bold blue] "
        f"[dim](max {settings.swarm.max_concurrent_tasks} concurrent)[/dim]"
    )
    started_at = time.time()
    results = await orchestrator.execute_many(tasks, deadline=deadline)
    elapsed = time.time() - started_at

    console.print("\n[bold blue]Task Results:[/bold blue]")
    for task, result in zip(tasks, results, strict=True):
        color = _OUTCOME_COLORS.get(str(result.outcome), "red")
        icon = "✅" if result.success else "❌"
        console.print(f"  {icon} [bold]{task.description[:60]}[/bold]")
        console.print(
            f"     [{color}]{result.outcome}[/{color}]  [dim]strategy={result.strategy_used}  "
            f"attempts={result.attempts}  quality={result.quality:.2f}[/dim]"
        )
        if result.error and not result.success:
            console.print(f"     [dim]{result.error[:120]}[/dim]")

    render_stats(orchestrator.get_stats())
    console.print(f"  [dim]elapsed {elapsed:.1f}s[/dim]")
    _render_alerts(orchestrator)
    return 0 if all(r.success for r in results) else 1


async def run_health(settings: Settings) -> int:
    """Check every configured adapter and print a status table."""
    orchestrator = await _start(settings)
    if orchestrator is None:
        return 1

    health = await orchestrator.health_check()
    table = Table(title="Adapter health")
    table.add_column("Adapter")
    table.add_column("Type")
    table.add_column("Status", no_wrap=True)
    for name, ok in health.items():
        adapter = orchestrator.adapters[name]
        table.add_row(
            name,
            adapter.name,
            "[green]healthy[/green]" if ok else "[red]unreachable[/red]",
        )
    console.print(table)
    return 0 if all(health.values()) else 1

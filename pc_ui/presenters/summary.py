"""Presenter for run summaries and persisted journals."""

from __future__ import annotations

from typing import List, Tuple

from rich.console import Console
from rich.table import Table

from pc_controller.api import RunJournal, RunState, TerminationReason

_RESULT_STYLES = {
    TerminationReason.CONVERGED: "green",
    TerminationReason.REBOOT_REQUIRED: "yellow",
    TerminationReason.BUDGET_EXHAUSTED: "yellow",
    TerminationReason.FATAL_ERROR: "red",
}


def build_cycle_rows(state: RunState) -> Tuple[List[str], List[List[str]]]:
    """Return (columns, rows) with one row per cycle plus a totals row."""
    columns = ["Cycle", "Applied", "Satisfied", "Skipped", "Failed", "Pending", "Reboot"]
    rows: List[List[str]] = []
    for cycle in state.cycles:
        rows.append(
            [
                str(cycle.cycle_number),
                str(cycle.applied),
                str(cycle.already_satisfied),
                str(cycle.skipped),
                str(cycle.failed),
                str(cycle.remaining),
                "yes" if cycle.reboot_required else "no",
            ]
        )
    rows.append(
        [
            "Total",
            str(state.applied),
            str(state.already_satisfied),
            str(state.skipped),
            str(state.failed),
            "",
            "yes" if state.reboot_pending else "no",
        ]
    )
    return columns, rows


def build_failure_rows(state: RunState) -> List[List[str]]:
    """Failed outcomes as [cycle, step, reason]."""
    rows: List[List[str]] = []
    for cycle in state.cycles:
        for outcome in cycle.outcomes:
            if outcome.is_failure:
                rows.append([str(cycle.cycle_number), outcome.step_id or "-", outcome.reason or ""])
    return rows


def render_run_summary(console: Console, state: RunState) -> None:
    columns, rows = build_cycle_rows(state)
    table = Table(title=f"Convergence run {state.run_id}", show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(column, justify="left" if column == "Cycle" else "right")
    for row in rows:
        table.add_row(*row)
    console.print(table)

    failures = build_failure_rows(state)
    if failures:
        failed = Table(title="Failed steps", show_header=True, header_style="bold red")
        failed.add_column("Cycle", justify="right")
        failed.add_column("Step", style="cyan")
        failed.add_column("Reason")
        for row in failures:
            failed.add_row(*row)
        console.print(failed)

    reason = state.termination_reason
    style = _RESULT_STYLES.get(reason, "red") if reason else "red"
    label = reason.value if reason else "unknown"
    console.print(
        f"[{style}]Result: {label}[/{style}] after {state.cycles_used}/{state.max_cycles} cycles"
    )
    if state.error:
        console.print(f"[red]{state.error.get('error')}[/red]")
    if reason is TerminationReason.REBOOT_REQUIRED:
        if state.reboot_initiated:
            console.print("[yellow]Reboot scheduled; run again after the machine restarts.[/yellow]")
        else:
            console.print("[yellow]Reboot required: reboot and run again to continue.[/yellow]")


def build_journal_rows(journal: RunJournal) -> Tuple[List[str], List[List[str]]]:
    columns = ["Field", "Value"]
    rows = [
        ["Run ID", journal.run_id],
        ["Status", journal.status],
        ["Cycles used", f"{journal.cycles_used}/{journal.max_cycles}"],
        ["Termination", journal.termination_reason or "-"],
        ["Resumable", "yes" if journal.resumable else "no"],
    ]
    return columns, rows


def render_journal(console: Console, journal: RunJournal) -> None:
    columns, rows = build_journal_rows(journal)
    table = Table(title="Run journal", show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*row)
    console.print(table)

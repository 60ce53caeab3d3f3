from __future__ import annotations

from pathlib import Path

import typer

from pc_common.errors import ConfigurationError, JournalError
from pc_controller.api import EXIT_CODES, EXIT_INVALID_PLAN, RebootSpec, RunJournal, TerminationReason
from pc_provisioner.api import build_reboot_signal
from pc_provisioner.reboot.signals import MarkerFileSignal
from pc_ui.presenters.summary import render_journal
from pc_ui.wiring.dependencies import UIContext


def register_inspect_commands(app: typer.Typer, ctx: UIContext) -> None:
    """Attach read-only helpers: check-reboot, status, validate."""

    @app.command("check-reboot")
    def check_reboot(
        preset: str = typer.Option(
            "auto", "--preset", help="auto, debian, rhel, suse, windows or none."
        ),
    ) -> None:
        """Report whether a reboot is pending (exit 3 when it is)."""
        try:
            spec = RebootSpec(preset=preset)
        except ValueError:
            ctx.console.print(f"[red]Unknown preset: {preset}[/red]")
            raise typer.Exit(EXIT_INVALID_PLAN)
        signal = build_reboot_signal(spec, ctx.plan_service.family, runner=ctx.plan_service.runner)
        if not signal.is_reboot_required():
            ctx.console.print("[green]No reboot required[/green]")
            return
        ctx.console.print("[yellow]Reboot required[/yellow]")
        markers = [signal] + list(getattr(signal, "signals", []))
        for marker in markers:
            if isinstance(marker, MarkerFileSignal):
                for package in marker.packages():
                    ctx.console.print(f"  - {package}")
        raise typer.Exit(EXIT_CODES[TerminationReason.REBOOT_REQUIRED])

    @app.command("status")
    def status(
        state_file: Path = typer.Option(..., "--state-file", help="Journal written by `pc run`."),
    ) -> None:
        """Show a persisted run journal."""
        if not state_file.exists():
            ctx.console.print(f"[yellow]No journal at {state_file}[/yellow]")
            raise typer.Exit(1)
        try:
            journal = RunJournal.load(state_file)
        except JournalError as exc:
            ctx.console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)
        render_journal(ctx.console, journal)

    @app.command("validate")
    def validate(
        plan: Path = typer.Argument(..., help="Plan file to validate."),
    ) -> None:
        """Validate a plan file without running it."""
        try:
            loaded = ctx.plan_service.load(plan)
            ctx.plan_service.resolve_options(loaded)
        except ConfigurationError as exc:
            ctx.console.print(f"[red]{exc}[/red]")
            for line in exc.context.get("errors", []):
                ctx.console.print(f"  - {line}")
            raise typer.Exit(EXIT_INVALID_PLAN)
        ctx.console.print(f"[green]Plan OK[/green]: {len(loaded.steps)} steps")

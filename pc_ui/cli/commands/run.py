from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from pc_common.config.env import parse_list_env
from pc_common.errors import ConfigurationError
from pc_controller.api import EXIT_INVALID_PLAN
from pc_ui.presenters.summary import render_run_summary
from pc_ui.wiring.dependencies import UIContext


def register_run_command(app: typer.Typer, ctx: UIContext) -> None:
    """Attach the `run` command to the root app."""

    @app.command("run")
    def run(
        plan: Path = typer.Argument(..., help="Plan file (YAML or JSON) listing the steps."),
        max_cycles: Optional[int] = typer.Option(
            None, "--max-cycles", "-n", help="Upper bound on convergence cycles."
        ),
        auto_reboot: Optional[bool] = typer.Option(
            None,
            "--auto-reboot/--no-auto-reboot",
            help="Schedule a reboot when one is pending instead of stopping.",
        ),
        lock_timeout: Optional[float] = typer.Option(
            None, "--lock-timeout", help="Seconds to wait for the package manager lock."
        ),
        poll_interval: Optional[float] = typer.Option(
            None, "--poll-interval", help="Seconds between lock polls."
        ),
        state_file: Optional[Path] = typer.Option(
            None, "--state-file", help="Journal file used to resume after a reboot."
        ),
        categories: Optional[str] = typer.Option(
            None, "--categories", help="Comma separated filters passed to every step."
        ),
        json_output: bool = typer.Option(
            False, "--json", help="Print the run summary as JSON."
        ),
    ) -> None:
        """Apply the plan until the system converges."""
        try:
            loaded = ctx.plan_service.load(plan)
            options = ctx.plan_service.resolve_options(
                loaded,
                max_cycles=max_cycles,
                auto_reboot=auto_reboot,
                lock_timeout=lock_timeout,
                poll_interval=poll_interval,
                state_file=state_file,
                categories=parse_list_env(categories),
            )
            controller = ctx.plan_service.build_controller(loaded, options)
        except ConfigurationError as exc:
            ctx.console.print(f"[red]{exc}[/red]")
            for line in exc.context.get("errors", []):
                ctx.console.print(f"  - {line}")
            raise typer.Exit(EXIT_INVALID_PLAN)

        state = controller.run()
        if json_output:
            typer.echo(json.dumps(state.summary(), indent=2))
        else:
            render_run_summary(ctx.console, state)
        raise typer.Exit(state.exit_code)

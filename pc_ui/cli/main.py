"""
Command-line interface for packer-converge.

Intended to be invoked by a Packer provisioner with a plan file; exit codes
tell Packer whether the image converged, needs a reboot, or failed.
"""

from __future__ import annotations

from typing import Optional

import typer

from pc_ui.cli.commands.inspect import register_inspect_commands
from pc_ui.cli.commands.run import register_run_command
from pc_ui.wiring.dependencies import UIContext, configure_logging

ctx_store = UIContext()

app = typer.Typer(
    help="Converge a machine by applying idempotent provisioning steps.",
    no_args_is_help=True,
)


@app.callback()
def entry(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
    log_json: Optional[bool] = typer.Option(
        None, "--log-json/--no-log-json", help="Render logs as JSON lines."
    ),
) -> None:
    """Global options shared by every command."""
    configure_logging(debug=debug, json=log_json, force=True)


register_run_command(app, ctx_store)
register_inspect_commands(app, ctx_store)


def main() -> None:
    """Console script entrypoint (Typer app)."""
    app()


if __name__ == "__main__":
    main()

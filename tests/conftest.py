from collections import defaultdict

import pytest
import structlog
from rich.console import Console
from rich.table import Table

# Markers declared in pyproject.toml
KNOWN_MARKERS = ("unit_common", "unit_controller", "unit_provisioner", "unit_ui")


@pytest.fixture(autouse=True)
def _clear_log_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


def _collect_marker_stats(terminalreporter):
    stats = defaultdict(lambda: {"passed": 0, "failed": 0, "skipped": 0, "total": 0, "duration": 0.0})
    for outcome in ("passed", "failed", "skipped"):
        for report in terminalreporter.stats.get(outcome, []):
            # Count the call phase, plus skips raised during setup
            if report.when != "call" and not (report.when == "setup" and report.outcome == "skipped"):
                continue
            for marker in KNOWN_MARKERS:
                if marker in report.keywords:
                    entry = stats[marker]
                    entry[outcome] += 1
                    entry["total"] += 1
                    entry["duration"] += getattr(report, "duration", 0.0)
    return stats


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Print per-marker pass/fail counts at the end of the session."""
    _ = (exitstatus, config)
    stats = _collect_marker_stats(terminalreporter)
    if not stats:
        return

    table = Table(title="Test Statistics by Marker", show_header=True, header_style="bold magenta")
    table.add_column("Marker", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Duration (s)", justify="right", style="blue")

    for marker in sorted(stats):
        entry = stats[marker]
        table.add_row(
            marker,
            str(entry["total"]),
            str(entry["passed"]),
            str(entry["failed"]),
            str(entry["skipped"]),
            f"{entry['duration']:.2f}",
        )

    console = Console()
    console.print("\n")
    console.print(table)

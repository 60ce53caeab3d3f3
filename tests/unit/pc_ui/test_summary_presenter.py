import pytest
from rich.console import Console

from pc_controller.api import (
    CycleState,
    JournalStatus,
    Outcome,
    OutcomeKind,
    RunJournal,
    RunState,
    TerminationReason,
)
from pc_ui.presenters.summary import (
    build_cycle_rows,
    build_failure_rows,
    build_journal_rows,
    render_run_summary,
)


pytestmark = pytest.mark.unit_ui


def _state():
    failed = Outcome(OutcomeKind.FAILED, "exit code 100", step_id="git")
    return RunState(
        max_cycles=3,
        run_id="converge-abc",
        cycles=[
            CycleState(1, applied=1, failed=1, outcomes=(Outcome(OutcomeKind.APPLIED, step_id="curl"), failed)),
            CycleState(2, already_satisfied=1, failed=1, reboot_required=True, outcomes=(failed,)),
        ],
        termination_reason=TerminationReason.BUDGET_EXHAUSTED,
        reboot_pending=True,
    )


def test_cycle_rows_include_totals():
    columns, rows = build_cycle_rows(_state())

    assert columns[0] == "Cycle"
    assert rows[0] == ["1", "1", "0", "0", "1", "0", "no"]
    assert rows[1][-1] == "yes"
    assert rows[-1] == ["Total", "1", "1", "0", "2", "", "yes"]


def test_failure_rows():
    assert build_failure_rows(_state()) == [["1", "git", "exit code 100"], ["2", "git", "exit code 100"]]


def test_render_run_summary():
    console = Console(record=True, width=120)
    render_run_summary(console, _state())
    text = console.export_text()

    assert "Convergence run converge-abc" in text
    assert "Failed steps" in text
    assert "Result: budget_exhausted after 2/3 cycles" in text


def test_journal_rows():
    journal = RunJournal.initialize("converge-abc", 5, ["a"])
    journal.status = JournalStatus.REBOOT_PENDING
    journal.cycles_used = 2

    _, rows = build_journal_rows(journal)

    assert ["Cycles used", "2/5"] in rows
    assert ["Resumable", "yes"] in rows

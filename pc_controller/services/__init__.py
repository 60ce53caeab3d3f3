"""Service layer utilities for the controller."""

from .journal import JournalStatus, RunJournal

__all__ = ["JournalStatus", "RunJournal"]

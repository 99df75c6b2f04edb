"""Exceptions raised during key item assignment."""

from __future__ import annotations


class AssignmentError(Exception):
    """Fatal error during key item assignment.

    Covers configuration and internal errors: the whole attempt is aborted
    and no partial assignment is produced.
    """

    pass


class HardLoopError(AssignmentError):
    """Dependency loop where no edge can be dropped safely.

    Depends on the random placement so far; retrying with a different seed
    usually succeeds.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Hard dependency loop: {' -> '.join(cycle)}")

"""
Errors raised by the bracket engine.

Every error is local to a single bracket or schedule operation and can be
recovered from by retrying with fresh state.
"""


class BracketError(Exception):
    """Base class for all engine errors."""


class InsufficientCompetitors(BracketError):
    """Fewer than two competitors; no bracket can be built."""

    def __init__(self, count, category_id=None):
        self.count = count
        self.category_id = category_id
        where = f" in {category_id}" if category_id else ""
        super().__init__(f"Not enough competitors{where}: {count} (need at least 2)")


class MatchNotPlayable(BracketError):
    """The match lacks two resolved sides or already carries a different result."""


class InvalidResult(BracketError):
    """Unknown match or competitor id, or a BYE passed as a real result."""


class ScheduleConflict(BracketError):
    """A schedule was computed from bracket state that has since changed."""


class ConcurrentModification(BracketError):
    """Compare-and-swap write rejected because the stored version moved on."""

    def __init__(self, bracket_id, expected_version, actual_version):
        self.bracket_id = bracket_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Bracket {bracket_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )

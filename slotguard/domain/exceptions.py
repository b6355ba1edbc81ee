"""
Exception hierarchy for the compliance and scheduling engine.
"""


class SlotGuardError(Exception):
    """Base class for all engine errors."""


class RepositoryError(SlotGuardError):
    """Raised when a persistence collaborator cannot load or store data."""


class ScheduleFormatError(SlotGuardError, ValueError):
    """Raised when a wall-clock string such as ``"09:30"`` cannot be parsed."""

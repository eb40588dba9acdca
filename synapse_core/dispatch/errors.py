"""Exceptions raised inside the dispatch layer.

None of these escape ``ActionDispatcher.dispatch``; they mark where a branch
gave up so the outcome can be recorded.
"""


class DirectiveError(Exception):
    """Base class for failures while acting on a directive."""


class ReservationError(DirectiveError):
    """Placeholder reservation failed; the creation flow is aborted."""


class CreationInProgressError(DirectiveError):
    """A creation flow is already running."""

"""Exceptions raised by the reactive graph itself.

Errors raised by user callbacks (computed functions, effects) are never
wrapped: they reach the reader or the writer that triggered the flush as-is.
"""


class ReactivityError(Exception):
    """Base class for errors raised by ripplefx."""


class PropagationCycleError(ReactivityError):
    """A flush did not settle: some effect kept re-triggering itself."""

    def __init__(self, effect: object, runs: int) -> None:
        super().__init__(
            f"{effect!r} ran {runs} times in one flush; "
            "an effect is probably writing to a ref it depends on"
        )
        self.effect = effect
        self.runs = runs


class CircularDependencyError(ReactivityError):
    """A computed value was read while it was being evaluated."""

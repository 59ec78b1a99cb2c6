"""Batches — grouped writes with a single flush.

Writes inside batch(), an @action or `with transaction()` update values and
mark dependents immediately, so reads inside the batch are always fresh, but
effects only run once the outermost scope exits. This prevents effects from
observing half-applied updates and from running once per write.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from ripplefx._scheduler import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def batch(fn: Callable[[], R]) -> R:
    """Run fn as one transaction and return its result.

    Usage:
        a = ref(1)
        batch(lambda: (a.set(1), a.set(2)))
        # effects reading `a` run once, seeing 2
    """
    begin_batch()
    try:
        return fn()
    finally:
        end_batch()


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator form of batch(): every call to fn is one transaction.

    Usage:
        first = ref(0)
        second = ref(0)

        @action
        def swap():
            a, b = first.peek(), second.peek()
            first.value = b
            second.value = a
            # effects see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return batch(functools.partial(fn, *args, **kwargs))

    return wrapper


@contextmanager
def transaction() -> Iterator[None]:
    """Statement form of batch(); the flush happens when the block exits.

    Usage:
        with transaction():
            first.value = 1
            second.value = 2
        # effects have run here, once, seeing both writes
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()

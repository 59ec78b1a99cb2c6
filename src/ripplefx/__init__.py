"""ripplefx: fine-grained reactive refs, computeds and effects for Python."""

from importlib.metadata import version as _version

__version__ = _version("ripplefx")

from ripplefx._scheduler import get_pending_count, set_max_effect_runs
from ripplefx._tracking import untracked
from ripplefx.ref import Ref, ref, set_scheduler
from ripplefx.computed import Computed, computed
from ripplefx.effect import Effect, effect, watch
from ripplefx.batch import action, batch, transaction
from ripplefx.errors import CircularDependencyError, PropagationCycleError, ReactivityError

__all__ = [
    "Ref",
    "ref",
    "Computed",
    "computed",
    "Effect",
    "effect",
    "watch",
    "batch",
    "action",
    "transaction",
    "untracked",
    "get_pending_count",
    "set_max_effect_runs",
    "set_scheduler",
    "ReactivityError",
    "PropagationCycleError",
    "CircularDependencyError",
]

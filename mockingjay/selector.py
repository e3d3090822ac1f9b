"""Weighted behavior selection and behavior table validation."""

import math
import random
import sys
import threading
from numbers import Real
from typing import Callable, Optional, Sequence

from mockingjay.models import Behavior

# Tolerance when checking that a table does not sum to more than 1.
EPSILON = 1e-9

Randomiser = Callable[[], float]


class BehaviorConfigError(ValueError):
    """Raised when a behavior table cannot be used by the monkey."""


class SystemRandomiser:
    """Uniform draws in [0, 1), safe to share between concurrent requests."""

    def __init__(self, seed=None):
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._random.random()


def select(behaviors: Sequence[Behavior], draw: float) -> Optional[Behavior]:
    """Pick the behavior whose probability interval contains ``draw``.

    Behaviors occupy consecutive half-open intervals
    ``[boundary, boundary + frequency)`` in table order, starting at 0.
    Draws landing past the last interval fall in the residual mass and
    select nothing. A table whose frequencies sum to exactly 1 has no
    residual mass: a draw past the running boundary there is summation
    error and goes to the last live behavior.

    Args:
        behaviors: The behavior table, in load order.
        draw: A uniform value in [0, 1).

    Returns:
        The selected Behavior, or None to pass the request through.
    """
    live = [b for b in behaviors if b.frequency > 0]
    boundary = 0.0
    for behavior in live:
        upper = boundary + behavior.frequency
        if boundary <= draw < upper:
            return behavior
        boundary = upper

    if live and _sums_to_one(live):
        return live[-1]
    return None


def _sums_to_one(behaviors: Sequence[Behavior]) -> bool:
    # fsum is exact up to a final rounding; allow one ulp per term for decimal inputs.
    total = math.fsum(b.frequency for b in behaviors)
    return abs(total - 1.0) <= len(behaviors) * sys.float_info.epsilon


def validate_behaviors(behaviors: Sequence[Behavior]) -> None:
    """Check a behavior table before it is used.

    Raises:
        BehaviorConfigError: If any record, or the table as a whole, is invalid.
    """
    errors = []
    total = 0.0
    for i, behavior in enumerate(behaviors):
        errors.extend(f"behaviors[{i}]: {msg}" for msg in _behavior_errors(behavior))
        if isinstance(behavior.frequency, Real):
            total += behavior.frequency

    if total > 1.0 + EPSILON:
        errors.append(f"frequencies sum to {total:g}, which is more than 1")

    if errors:
        raise BehaviorConfigError(
            "invalid behavior table:\n  - " + "\n  - ".join(errors)
        )


def _behavior_errors(behavior: Behavior):
    errors = []
    freq = behavior.frequency
    if isinstance(freq, bool) or not isinstance(freq, Real):
        errors.append(f"frequency must be a number, got {freq!r}")
    elif not 0.0 <= freq <= 1.0:
        errors.append(f"frequency must be between 0 and 1, got {freq}")

    payload = [name for name in ("body", "delay", "garbage") if getattr(behavior, name) is not None]
    if len(payload) > 1:
        errors.append("only one of body, delay, garbage may be set, got " + ", ".join(payload))
    if behavior.delay is not None and behavior.status is not None:
        errors.append("delay cannot be combined with status")

    if behavior.delay is not None and not _non_negative_int(behavior.delay):
        errors.append(f"delay must be a non-negative integer, got {behavior.delay!r}")
    if behavior.garbage is not None and not _non_negative_int(behavior.garbage):
        errors.append(f"garbage must be a non-negative integer, got {behavior.garbage!r}")
    if behavior.status is not None and not (
        _non_negative_int(behavior.status) and 100 <= behavior.status <= 599
    ):
        errors.append(f"status must be an HTTP status code, got {behavior.status!r}")
    if behavior.body is not None and not isinstance(behavior.body, str):
        errors.append(f"body must be a string, got {behavior.body!r}")
    return errors


def _non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0

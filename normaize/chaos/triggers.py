"""
Trigger predicates for chaos scenarios.

A trigger receives the optional scenario context and decides whether the
scenario fires.
"""

import random

from normaize.chaos.base import ChaosContext, TriggerCondition
from normaize.core.constants import CORRELATION_ID_KEY


def always() -> TriggerCondition:
    """Fire on every call."""
    return lambda context: True


def never() -> TriggerCondition:
    """Never fire."""
    return lambda context: False


def probability(p: float, rng: random.Random | None = None) -> TriggerCondition:
    """Fire with probability p (0.0 to 1.0)."""
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"probability must be between 0.0 and 1.0, got {p}")
    rng = rng or random.Random()
    return lambda context: rng.random() < p


def correlation_id_in(correlation_ids: list[str] | set[str]) -> TriggerCondition:
    """Fire only for the listed correlation ids."""
    allowed = set(correlation_ids)

    def trigger(context: ChaosContext | None) -> bool:
        if not context:
            return False
        return context.get(CORRELATION_ID_KEY) in allowed

    return trigger


def metadata_equals(key: str, value) -> TriggerCondition:
    """Fire when the scenario context holds key == value."""

    def trigger(context: ChaosContext | None) -> bool:
        return bool(context) and context.get(key) == value

    return trigger

"""
Injectable chaos actions.
"""

import asyncio
import random

from normaize.chaos.base import ChaosAction
from normaize.core.errors import InjectedFault


def delay(milliseconds: float) -> ChaosAction:
    """Sleep for a fixed number of milliseconds."""

    async def action() -> None:
        await asyncio.sleep(milliseconds / 1000)

    return action


def random_delay(min_ms: int, max_ms: int, rng: random.Random | None = None) -> ChaosAction:
    """Sleep for a random duration between min_ms and max_ms."""
    if min_ms > max_ms:
        raise ValueError("min_ms must not exceed max_ms")
    rng = rng or random.Random()

    async def action() -> None:
        await asyncio.sleep(rng.randint(min_ms, max_ms) / 1000)

    return action


def raise_fault(message: str, scenario: str | None = None) -> ChaosAction:
    """Raise InjectedFault when executed."""

    async def action() -> None:
        raise InjectedFault(message, scenario=scenario)

    return action

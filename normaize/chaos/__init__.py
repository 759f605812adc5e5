"""
Fault injection ("chaos") for resilience testing.
"""

from .base import ChaosStats, FaultInjector, NullFaultInjector
from .engine import ChaosEngine

__all__ = [
    "ChaosEngine",
    "ChaosStats",
    "FaultInjector",
    "NullFaultInjector",
]

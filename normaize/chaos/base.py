"""
Fault-injection port.

Pipeline components depend on the FaultInjector protocol, so tests and
production can swap ChaosEngine for NullFaultInjector without touching
call sites.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

ChaosContext = dict[str, Any]
TriggerCondition = Callable[[ChaosContext | None], bool]
ChaosAction = Callable[[], Awaitable[Any]]


class ChaosStats(BaseModel):
    """
    Snapshot of fault-injection activity.

    Attributes:
        total_scenarios: Number of scenarios that have triggered at least once
        triggered_scenarios: Total number of triggers across scenarios
        scenario_counts: Trigger count per scenario
        last_triggered: Time of the most recent trigger, if any
    """

    total_scenarios: int = 0
    triggered_scenarios: int = 0
    scenario_counts: dict[str, int] = Field(default_factory=dict)
    last_triggered: datetime | None = None


class FaultInjector(Protocol):
    """Named-scenario trigger/execute API."""

    def should_trigger(self, scenario_name: str, context: ChaosContext | None = None) -> bool:
        ...

    async def execute(
        self,
        scenario_name: str,
        action: ChaosAction,
        context: ChaosContext | None = None,
    ) -> bool:
        ...

    async def execute_value(
        self,
        scenario_name: str,
        action: Callable[[], Awaitable[T]],
        context: ChaosContext | None = None,
    ) -> T | None:
        ...

    def register_scenario(
        self,
        scenario_name: str,
        trigger: TriggerCondition,
        action: ChaosAction,
    ) -> None:
        ...

    def get_stats(self) -> ChaosStats:
        ...


class NullFaultInjector:
    """Fault injector that never triggers. Used when chaos is switched off."""

    def should_trigger(self, scenario_name: str, context: ChaosContext | None = None) -> bool:
        return False

    async def execute(self, scenario_name, action, context=None) -> bool:
        return False

    async def execute_value(self, scenario_name, action, context=None):
        return None

    def register_scenario(self, scenario_name, trigger, action) -> None:
        return None

    def get_stats(self) -> ChaosStats:
        return ChaosStats()

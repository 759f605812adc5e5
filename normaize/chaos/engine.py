"""
Chaos engine: configurable fault injection for resilience testing.

Scenarios are looked up by name. Whether a scenario fires is decided by
(in order) the master switch, the environment allow-list, the global
per-minute rate limit, user-based overrides, a registered trigger
predicate, and finally the scenario's configured probability.
"""

import random
import threading
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel

from normaize.chaos.actions import random_delay, raise_fault
from normaize.chaos.base import ChaosAction, ChaosContext, ChaosStats, TriggerCondition
from normaize.core.config import ChaosScenarioSettings, ChaosSettings, TimeWindow
from normaize.core.constants import (
    CACHE_FAILURE_SCENARIO,
    DATABASE_TIMEOUT_SCENARIO,
    DEFAULT_SCENARIO_PROBABILITY,
    NETWORK_LATENCY_SCENARIO,
    PROCESSING_DELAY_SCENARIO,
    STORAGE_FAILURE_SCENARIO,
    USER_ID_KEY,
)
from normaize.core.errors import InjectedFault
from normaize.observability.logger import get_logger
from normaize.observability.metrics import chaos_triggers_total, increment_counter

logger = get_logger(__name__)

T = TypeVar("T")

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)


class _Scenario(BaseModel):
    """Registered trigger and action for one scenario name."""

    trigger: TriggerCondition | None = None
    action: ChaosAction | None = None


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _parse_time(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def is_in_time_window(now: datetime, windows: list[TimeWindow]) -> bool:
    """
    Check whether now falls inside any of the windows.

    Windows whose start is after their end wrap past midnight
    (e.g. 22:00 to 06:00).
    """
    current = now.time().replace(second=0, microsecond=0)
    # datetime.weekday() is Monday=0; windows use Sunday=0
    day_of_week = (now.weekday() + 1) % 7

    for window in windows:
        if day_of_week not in window.days_of_week:
            continue
        start = _parse_time(window.start_time)
        end = _parse_time(window.end_time)
        if start <= end:
            if start <= current <= end:
                return True
        elif current >= start or current <= end:
            return True
    return False


class ChaosEngine:
    """
    Fault injector backed by configuration and a lock-guarded registry.

    Usage:
        engine = ChaosEngine(settings.chaos)
        engine.register_scenario("storage-failure", always(), raise_fault("boom"))
        await engine.execute("storage-failure", delay(100))
    """

    def __init__(
        self,
        settings: ChaosSettings,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        register_builtins: bool = False,
    ):
        """
        Args:
            settings: Chaos configuration
            rng: Random source (inject a seeded instance for deterministic tests)
            clock: Returns the current timezone-aware time
            register_builtins: Register the built-in delay/failure actions
        """
        self.settings = settings
        self._rng = rng or random.Random()
        self._clock = clock or _local_now
        self._lock = threading.Lock()
        self._scenarios: dict[str, _Scenario] = {}
        self._scenario_counts: dict[str, int] = {}
        self._last_trigger_times: dict[str, datetime] = {}
        self._recent_triggers: deque[datetime] = deque()
        self._hourly_triggers: dict[str, deque[datetime]] = {}

        if register_builtins:
            self._register_builtin_scenarios()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def should_trigger(self, scenario_name: str, context: ChaosContext | None = None) -> bool:
        """
        Decide whether a scenario fires for this call.

        Args:
            scenario_name: Scenario name
            context: Optional context (user_id, correlation_id, ...)

        Returns:
            True if the scenario should fire
        """
        settings = self.settings
        if not settings.enabled:
            return False

        if settings.environment not in settings.allowed_environments:
            return False

        if self._is_rate_limited():
            return False

        user_triggers = settings.user_based_triggers
        if context and user_triggers.enabled:
            user_id = context.get(USER_ID_KEY)
            if user_id:
                user_id = str(user_id)
                if user_id in user_triggers.excluded_user_ids:
                    return False
                if user_id in user_triggers.test_user_ids:
                    p = (
                        self._scenario_probability(scenario_name)
                        * user_triggers.test_user_probability_multiplier
                        * settings.global_probability_multiplier
                    )
                    return self._roll(p)

        with self._lock:
            scenario = self._scenarios.get(scenario_name)
        if scenario is not None and scenario.trigger is not None:
            return bool(scenario.trigger(context))

        scenario_settings = settings.scenarios.get(scenario_name)
        if scenario_settings is not None:
            return self._should_trigger_configured(scenario_name, scenario_settings)

        return self._roll(DEFAULT_SCENARIO_PROBABILITY * settings.global_probability_multiplier)

    async def execute(
        self,
        scenario_name: str,
        action: ChaosAction,
        context: ChaosContext | None = None,
    ) -> bool:
        """
        Run a chaos action if the scenario fires.

        A registered action for the scenario replaces the supplied one.
        InjectedFault propagates to the caller; other action errors are
        logged and reported as not executed.

        Returns:
            True if the scenario fired and its action completed
        """
        if not self.should_trigger(scenario_name, context):
            return False

        chosen = self._begin(scenario_name, context) or action
        try:
            await chosen()
        except InjectedFault:
            raise
        except Exception:
            logger.error(
                f"Chaos scenario action failed: {scenario_name}",
                extra={"scenario": scenario_name, "context": context or {}},
                exc_info=True,
            )
            return False
        return True

    async def execute_value(
        self,
        scenario_name: str,
        action: Callable[[], Awaitable[T]],
        context: ChaosContext | None = None,
    ) -> T | None:
        """
        Value-returning variant of execute().

        Returns:
            The action's result, or None when the scenario did not fire,
            a registered action ran instead, or the action failed
        """
        if not self.should_trigger(scenario_name, context):
            return None

        registered = self._begin(scenario_name, context)
        try:
            if registered is not None:
                await registered()
                return None
            return await action()
        except InjectedFault:
            raise
        except Exception:
            logger.error(
                f"Chaos scenario action failed: {scenario_name}",
                extra={"scenario": scenario_name, "context": context or {}},
                exc_info=True,
            )
            return None

    def register_scenario(
        self,
        scenario_name: str,
        trigger: TriggerCondition | None,
        action: ChaosAction | None,
    ) -> None:
        """
        Register (or replace) a scenario's trigger predicate and action.

        Raises:
            ValueError: If the name is empty or both trigger and action are None
        """
        if not scenario_name:
            raise ValueError("scenario_name must be a non-empty string")
        if trigger is None and action is None:
            raise ValueError("A scenario needs a trigger, an action, or both")

        with self._lock:
            self._scenarios[scenario_name] = _Scenario(trigger=trigger, action=action)

        logger.info(f"Registered chaos scenario: {scenario_name}")

    def get_stats(self) -> ChaosStats:
        """Snapshot of trigger counts."""
        with self._lock:
            counts = dict(self._scenario_counts)
            last = max(self._last_trigger_times.values()) if self._last_trigger_times else None
        return ChaosStats(
            total_scenarios=len(counts),
            triggered_scenarios=sum(counts.values()),
            scenario_counts=counts,
            last_triggered=last,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin(self, scenario_name: str, context: ChaosContext | None) -> ChaosAction | None:
        """Record a trigger, log it, and return the registered action if any."""
        self._record_trigger(scenario_name)

        if self.settings.enable_logging:
            logger.warning(
                f"Chaos scenario triggered: {scenario_name}",
                extra={"scenario": scenario_name, "context": context or {}},
            )

        with self._lock:
            scenario = self._scenarios.get(scenario_name)
        return scenario.action if scenario is not None else None

    def _roll(self, p: float) -> bool:
        with self._lock:
            return self._rng.random() < p

    def _scenario_probability(self, scenario_name: str) -> float:
        scenario_settings = self.settings.scenarios.get(scenario_name)
        if scenario_settings is not None:
            return scenario_settings.probability
        return DEFAULT_SCENARIO_PROBABILITY

    def _should_trigger_configured(self, scenario_name: str, config: ChaosScenarioSettings) -> bool:
        if not config.enabled:
            return False

        if config.time_window_restricted and not is_in_time_window(
            self._clock(), config.allowed_time_windows
        ):
            return False

        if self._is_hourly_rate_limited(scenario_name, config.max_triggers_per_hour):
            return False

        return self._roll(config.probability * self.settings.global_probability_multiplier)

    def _is_rate_limited(self) -> bool:
        now = self._clock()
        with self._lock:
            while self._recent_triggers and now - self._recent_triggers[0] > MINUTE:
                self._recent_triggers.popleft()
            return len(self._recent_triggers) >= self.settings.max_triggers_per_minute

    def _is_hourly_rate_limited(self, scenario_name: str, max_per_hour: int) -> bool:
        now = self._clock()
        with self._lock:
            window = self._hourly_triggers.get(scenario_name)
            if not window:
                return max_per_hour <= 0
            while window and now - window[0] > HOUR:
                window.popleft()
            return len(window) >= max_per_hour

    def _record_trigger(self, scenario_name: str) -> None:
        now = self._clock()
        with self._lock:
            self._scenario_counts[scenario_name] = self._scenario_counts.get(scenario_name, 0) + 1
            self._last_trigger_times[scenario_name] = now
            self._recent_triggers.append(now)
            self._hourly_triggers.setdefault(scenario_name, deque()).append(now)
        increment_counter(chaos_triggers_total, 1, scenario=scenario_name)

    def _register_builtin_scenarios(self) -> None:
        """Default actions for the well-known scenarios. Triggers come from settings."""
        builtins: dict[str, Any] = {
            PROCESSING_DELAY_SCENARIO: random_delay(1000, 5000, self._rng),
            DATABASE_TIMEOUT_SCENARIO: random_delay(5000, 15000, self._rng),
            NETWORK_LATENCY_SCENARIO: random_delay(500, 2000, self._rng),
            STORAGE_FAILURE_SCENARIO: raise_fault("Simulated storage failure", STORAGE_FAILURE_SCENARIO),
            CACHE_FAILURE_SCENARIO: raise_fault("Simulated cache failure", CACHE_FAILURE_SCENARIO),
        }
        for name, action in builtins.items():
            self.register_scenario(name, None, action)

"""
Unit tests for the chaos engine, triggers and actions.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from normaize.chaos import ChaosEngine, NullFaultInjector
from normaize.chaos.actions import delay, raise_fault, random_delay
from normaize.chaos.engine import is_in_time_window
from normaize.chaos.triggers import always, correlation_id_in, metadata_equals, never, probability
from normaize.core.config import ChaosScenarioSettings, ChaosSettings, TimeWindow, UserBasedTriggers
from normaize.core.errors import InjectedFault
from normaize.observability.metrics import chaos_triggers_total, get_counter_value


def make_engine(fixed_clock, **overrides) -> ChaosEngine:
    values = {
        "enabled": True,
        "environment": "development",
        "max_triggers_per_minute": 100,
    }
    values.update(overrides)
    return ChaosEngine(ChaosSettings(**values), rng=random.Random(7), clock=fixed_clock)


def counting_action(calls: list):
    async def action():
        calls.append(1)

    return action


class TestGating:
    """Tests for the master switch, environment and rate limits"""

    def test_disabled_never_triggers(self, fixed_clock):
        """Test nothing fires while chaos is disabled"""
        engine = make_engine(fixed_clock, enabled=False)
        engine.register_scenario("s", always(), None)

        assert engine.should_trigger("s") is False

    def test_environment_not_allowed(self, fixed_clock):
        """Test production is outside the default allow-list"""
        engine = make_engine(fixed_clock, environment="Production")
        engine.register_scenario("s", always(), None)

        assert engine.should_trigger("s") is False

    def test_registered_trigger_decides(self, chaos_engine):
        """Test a registered predicate overrides configured probability"""
        chaos_engine.register_scenario("on", always(), None)
        chaos_engine.register_scenario("off", never(), None)

        assert chaos_engine.should_trigger("on") is True
        assert chaos_engine.should_trigger("off") is False

    def test_per_minute_rate_limit(self, fixed_clock):
        """Test the global rate limit stops triggers within a minute"""
        engine = make_engine(fixed_clock, max_triggers_per_minute=2)
        engine.register_scenario("s", always(), None)
        calls = []

        results = [asyncio.run(engine.execute("s", counting_action(calls))) for _ in range(3)]

        assert results == [True, True, False]
        assert len(calls) == 2

    def test_per_minute_limit_resets(self):
        """Test triggers older than a minute no longer count"""
        now = [datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)]
        engine = make_engine(lambda: now[0], max_triggers_per_minute=1)
        engine.register_scenario("s", always(), None)

        assert asyncio.run(engine.execute("s", delay(0))) is True
        assert engine.should_trigger("s") is False

        now[0] += timedelta(minutes=2)
        assert engine.should_trigger("s") is True

    def test_hourly_rate_limit(self, fixed_clock):
        """Test a configured scenario respects max_triggers_per_hour"""
        engine = make_engine(
            fixed_clock,
            scenarios={"s": ChaosScenarioSettings(enabled=True, probability=1.0, max_triggers_per_hour=2)},
        )

        results = [asyncio.run(engine.execute("s", delay(0))) for _ in range(3)]

        assert results == [True, True, False]

    def test_configured_scenario_disabled(self, fixed_clock):
        """Test a disabled scenario never fires regardless of probability"""
        engine = make_engine(
            fixed_clock, scenarios={"s": ChaosScenarioSettings(enabled=False, probability=1.0)}
        )
        assert engine.should_trigger("s") is False

    def test_global_multiplier_zero(self, fixed_clock):
        """Test a zero global multiplier silences configured scenarios"""
        engine = make_engine(
            fixed_clock,
            global_probability_multiplier=0.0,
            scenarios={"s": ChaosScenarioSettings(enabled=True, probability=1.0)},
        )
        assert engine.should_trigger("s") is False


class TestUserBasedTriggers:
    """Tests for test-user and excluded-user overrides"""

    def test_excluded_user_never_triggers(self, fixed_clock):
        """Test excluded users win over a registered always-trigger"""
        engine = make_engine(
            fixed_clock,
            user_based_triggers=UserBasedTriggers(enabled=True, excluded_user_ids=["vip"]),
        )
        engine.register_scenario("s", always(), None)

        assert engine.should_trigger("s", {"user_id": "vip"}) is False
        assert engine.should_trigger("s", {"user_id": "someone"}) is True

    def test_test_user_probability_boost(self, fixed_clock):
        """Test the multiplier lifts a 10% scenario to certainty for test users"""
        engine = make_engine(
            fixed_clock,
            scenarios={"s": ChaosScenarioSettings(enabled=True, probability=0.1)},
            user_based_triggers=UserBasedTriggers(
                enabled=True, test_user_ids=["tester"], test_user_probability_multiplier=10.0
            ),
        )

        assert all(engine.should_trigger("s", {"user_id": "tester"}) for _ in range(20))


class TestTimeWindows:
    """Tests for time-window restriction"""

    weekdays = TimeWindow(start_time="09:00", end_time="17:00", days_of_week=[1, 2, 3, 4, 5])
    overnight = TimeWindow(start_time="22:00", end_time="06:00")

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2024, 1, 10, 12, 0), True),    # Wednesday noon
        (datetime(2024, 1, 10, 8, 59), False),   # before start
        (datetime(2024, 1, 10, 17, 0), True),    # end is inclusive
        (datetime(2024, 1, 14, 12, 0), False),   # Sunday
        (datetime(2024, 1, 13, 12, 0), False),   # Saturday
    ])
    def test_weekday_window(self, moment, expected):
        """Test day-of-week uses Sunday=0 and bounds are inclusive"""
        assert is_in_time_window(moment, [self.weekdays]) is expected

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2024, 1, 10, 23, 0), True),
        (datetime(2024, 1, 10, 5, 30), True),
        (datetime(2024, 1, 10, 12, 0), False),
    ])
    def test_window_wraps_midnight(self, moment, expected):
        """Test windows with start after end wrap past midnight"""
        assert is_in_time_window(moment, [self.overnight]) is expected

    def test_restricted_scenario_outside_window(self):
        """Test a restricted scenario does not fire outside its window"""
        saturday = datetime(2024, 1, 13, 12, 0, tzinfo=timezone.utc)
        engine = make_engine(
            lambda: saturday,
            scenarios={"s": ChaosScenarioSettings(
                enabled=True,
                probability=1.0,
                time_window_restricted=True,
                allowed_time_windows=[self.weekdays],
            )},
        )
        assert engine.should_trigger("s") is False


class TestExecute:
    """Tests for execute, execute_value and registration"""

    def test_execute_runs_action(self, chaos_engine):
        """Test the supplied action runs when the scenario fires"""
        chaos_engine.register_scenario("s", always(), None)
        calls = []

        assert asyncio.run(chaos_engine.execute("s", counting_action(calls))) is True
        assert calls == [1]

    def test_execute_skips_when_not_triggered(self, chaos_engine):
        """Test the action does not run when the scenario does not fire"""
        chaos_engine.register_scenario("s", never(), None)
        calls = []

        assert asyncio.run(chaos_engine.execute("s", counting_action(calls))) is False
        assert calls == []

    def test_registered_action_overrides(self, chaos_engine):
        """Test a registered action replaces the one supplied at the call site"""
        registered, supplied = [], []
        chaos_engine.register_scenario("s", always(), counting_action(registered))

        asyncio.run(chaos_engine.execute("s", counting_action(supplied)))

        assert registered == [1]
        assert supplied == []

    def test_injected_fault_propagates(self, chaos_engine):
        """Test InjectedFault reaches the caller"""
        chaos_engine.register_scenario("s", always(), raise_fault("boom", "s"))

        with pytest.raises(InjectedFault) as exc_info:
            asyncio.run(chaos_engine.execute("s", delay(0)))

        assert exc_info.value.scenario == "s"

    def test_other_action_errors_absorbed(self, chaos_engine):
        """Test unexpected action errors are logged and reported as not executed"""
        async def broken():
            raise RuntimeError("bug in action")

        chaos_engine.register_scenario("s", always(), None)

        assert asyncio.run(chaos_engine.execute("s", broken)) is False

    def test_execute_value(self, chaos_engine):
        """Test execute_value returns the action result or None"""
        async def produce():
            return 42

        chaos_engine.register_scenario("on", always(), None)
        chaos_engine.register_scenario("off", never(), None)

        assert asyncio.run(chaos_engine.execute_value("on", produce)) == 42
        assert asyncio.run(chaos_engine.execute_value("off", produce)) is None

    def test_execute_value_with_registered_action(self, chaos_engine):
        """Test a registered action runs and execute_value yields None"""
        calls = []

        async def produce():
            return 42

        chaos_engine.register_scenario("s", always(), counting_action(calls))

        assert asyncio.run(chaos_engine.execute_value("s", produce)) is None
        assert calls == [1]

    @pytest.mark.parametrize("name,trigger,action", [
        ("", always(), None),
        ("s", None, None),
    ])
    def test_register_rejects_invalid(self, chaos_engine, name, trigger, action):
        """Test registration needs a name and a trigger or action"""
        with pytest.raises(ValueError):
            chaos_engine.register_scenario(name, trigger, action)

    def test_builtins_registered_on_request(self, chaos_settings, fixed_clock):
        """Test built-in scenarios replace call-site actions only when enabled"""
        settings = chaos_settings.model_copy(update={
            "scenarios": {"storage-failure": ChaosScenarioSettings(enabled=True, probability=1.0)},
        })
        plain = ChaosEngine(settings, rng=random.Random(1), clock=fixed_clock)
        with_builtins = ChaosEngine(settings, rng=random.Random(1), clock=fixed_clock, register_builtins=True)

        assert asyncio.run(plain.execute("storage-failure", delay(0))) is True
        with pytest.raises(InjectedFault) as exc_info:
            asyncio.run(with_builtins.execute("storage-failure", delay(0)))
        assert exc_info.value.scenario == "storage-failure"


class TestStats:
    """Tests for get_stats and the trigger metric"""

    def test_stats_track_triggers(self, chaos_engine, fixed_clock):
        """Test counts, distinct scenarios and last trigger time"""
        chaos_engine.register_scenario("a", always(), None)
        chaos_engine.register_scenario("b", always(), None)

        asyncio.run(chaos_engine.execute("a", delay(0)))
        asyncio.run(chaos_engine.execute("a", delay(0)))
        asyncio.run(chaos_engine.execute("b", delay(0)))

        stats = chaos_engine.get_stats()
        assert stats.total_scenarios == 2
        assert stats.triggered_scenarios == 3
        assert stats.scenario_counts == {"a": 2, "b": 1}
        assert stats.last_triggered == fixed_clock()

    def test_should_trigger_does_not_count(self, chaos_engine):
        """Test only executed triggers are recorded"""
        chaos_engine.register_scenario("s", always(), None)
        chaos_engine.should_trigger("s")

        assert chaos_engine.get_stats().triggered_scenarios == 0

    def test_trigger_metric_incremented(self, chaos_engine):
        """Test each trigger increments chaos_triggers_total"""
        chaos_engine.register_scenario("metric-scenario", always(), None)
        before = get_counter_value(chaos_triggers_total, scenario="metric-scenario")

        asyncio.run(chaos_engine.execute("metric-scenario", delay(0)))

        assert get_counter_value(chaos_triggers_total, scenario="metric-scenario") == before + 1


class TestTriggersAndActions:
    """Tests for trigger predicates, actions and the null injector"""

    def test_probability_bounds(self):
        """Test probability rejects values outside [0, 1]"""
        with pytest.raises(ValueError):
            probability(1.5)

    def test_probability_extremes(self):
        """Test 0 never fires and 1 always fires"""
        rng = random.Random(3)
        assert not any(probability(0.0, rng)(None) for _ in range(50))
        assert all(probability(1.0, rng)(None) for _ in range(50))

    def test_correlation_id_in(self):
        """Test correlation id membership"""
        trigger = correlation_id_in(["c-1"])
        assert trigger({"correlation_id": "c-1"}) is True
        assert trigger({"correlation_id": "c-2"}) is False
        assert trigger(None) is False

    def test_metadata_equals(self):
        """Test context key/value matching"""
        trigger = metadata_equals("file_format", ".csv")
        assert trigger({"file_format": ".csv"}) is True
        assert trigger({"file_format": ".json"}) is False
        assert trigger(None) is False

    def test_random_delay_rejects_inverted_range(self):
        """Test min_ms must not exceed max_ms"""
        with pytest.raises(ValueError):
            random_delay(10, 5)

    def test_null_injector(self):
        """Test the null injector never fires"""
        injector = NullFaultInjector()
        calls = []
        injector.register_scenario("s", always(), counting_action(calls))

        assert injector.should_trigger("s") is False
        assert asyncio.run(injector.execute("s", counting_action(calls))) is False
        assert calls == []
        assert injector.get_stats().triggered_scenarios == 0

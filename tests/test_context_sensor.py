"""
Tests for the ContextSensor: sub-layer gathering and fallbacks, caching,
emission debounce, digital body language, pattern learning and retention.
"""
import asyncio
from datetime import timezone

import pytest

from aura_engine.layers.context_sensor import (
    ContextSensor,
    energy_level_for,
    haversine_m,
    time_of_day_for,
)
from aura_engine.services.sensors import (
    ContextProviders,
    SimulatedBatteryProvider,
    SimulatedLocationProvider,
    SimulatedNetworkProvider,
)
from aura_engine.services.storage import InMemoryPatternStore, StorageError
from aura_engine.types.config import ContextSensorConfig, RetentionConfig
from aura_engine.types.context import (
    ContextSnapshot,
    Coordinates,
    DeviceState,
    DistractionRisk,
    EnergyLevel,
    EnvironmentType,
    Interaction,
    InteractionState,
    InteractionType,
    LearnedPatterns,
    LocationContext,
    NetworkQuality,
    NoiseLevel,
    OptimalTimeEntry,
    RecommendedAction,
    SocialSetting,
    TimeIntelligence,
    TimeOfDay,
)
from aura_engine.types.domain_events import DomainEventType

from conftest import MONDAY_10AM, MONDAY_1PM, ManualClock


class FailingPruneStore(InMemoryPatternStore):
    def prune_snapshots(self, cutoff, max_entries):
        raise StorageError("disk full")


class FailingPatternStore(InMemoryPatternStore):
    def save_patterns(self, patterns):
        raise StorageError("read-only filesystem")


def build_sensor(providers, clock, logger, store=None, bus=None, config=None, retention=None):
    return ContextSensor(
        providers,
        config or ContextSensorConfig(),
        retention=retention,
        store=store,
        bus=bus,
        logger=logger,
        clock=clock,
        tz=timezone.utc,
    )


def record_switches(sensor, now, count=25, spacing=20.0):
    for k in reversed(range(count)):
        sensor.record_interaction(Interaction(now - k * spacing, InteractionType.SWITCH))


@pytest.fixture
def sensor(providers, clock, logger, store, bus):
    return build_sensor(providers, clock, logger, store=store, bus=bus)


@pytest.fixture
def afternoon():
    return ManualClock(MONDAY_1PM)


class TestHelpers:

    def test_haversine_one_degree_latitude(self):
        distance = haversine_m(Coordinates(0.0, 0.0), Coordinates(1.0, 0.0))
        assert distance == pytest.approx(111195, rel=1e-3)

    @pytest.mark.parametrize("hour,expected", [
        (3, TimeOfDay.LATE_NIGHT),
        (7, TimeOfDay.EARLY_MORNING),
        (10, TimeOfDay.MORNING),
        (13, TimeOfDay.MIDDAY),
        (15, TimeOfDay.AFTERNOON),
        (20, TimeOfDay.EVENING),
        (23, TimeOfDay.LATE_NIGHT),
    ])
    def test_time_of_day(self, hour, expected):
        assert time_of_day_for(hour) == expected

    def test_energy_levels(self):
        assert energy_level_for(0.85) == EnergyLevel.PEAK
        assert energy_level_for(0.75) == EnergyLevel.HIGH
        assert energy_level_for(0.6) == EnergyLevel.MEDIUM
        assert energy_level_for(0.45) == EnergyLevel.LOW
        assert energy_level_for(0.2) == EnergyLevel.RECOVERY

    def test_recommended_actions(self):
        time_ok = TimeIntelligence.fallback()
        tired = TimeIntelligence(10.0, TimeOfDay.MORNING, "monday", False, EnergyLevel.LOW, 0.4)
        calm = LocationContext.fallback()
        busy = LocationContext(
            EnvironmentType.COMMUTE, NoiseLevel.NOISY, SocialSetting.PUBLIC, 0.5, 0.2, DistractionRisk.HIGH
        )

        assert ContextSensor.recommend_action(0.9, tired, busy) == RecommendedAction.PROCEED
        assert ContextSensor.recommend_action(0.5, tired, calm) == RecommendedAction.TAKE_BREAK
        assert ContextSensor.recommend_action(0.5, time_ok, busy) == RecommendedAction.OPTIMIZE_ENVIRONMENT
        assert ContextSensor.recommend_action(0.3, time_ok, calm) == RecommendedAction.RESCHEDULE
        assert ContextSensor.recommend_action(0.5, time_ok, calm) == RecommendedAction.OPTIMIZE_ENVIRONMENT
        assert ContextSensor.recommend_action(0.7, time_ok, calm) == RecommendedAction.PROCEED


class TestSnapshot:
    """A full capture with every provider healthy."""

    @pytest.mark.asyncio
    async def test_morning_snapshot_at_home(self, sensor):
        snapshot = await sensor.get_current_context()

        assert snapshot.timestamp == MONDAY_10AM
        assert snapshot.session_id == "default"

        t = snapshot.time
        assert t.circadian_hour == pytest.approx(10.0)
        assert t.day_of_week == "monday"
        assert t.time_of_day == TimeOfDay.MORNING
        assert t.historical_performance == pytest.approx(0.85)
        assert t.is_optimal_window is True
        assert t.energy_level == EnergyLevel.PEAK
        assert t.next_optimal_window == MONDAY_10AM + 3600

        loc = snapshot.location
        assert loc.environment == EnvironmentType.HOME
        assert loc.social_setting == SocialSetting.PRIVATE
        assert loc.noise_level == NoiseLevel.MODERATE
        assert loc.distraction_risk == DistractionRisk.MEDIUM
        assert loc.privacy_level == pytest.approx(0.6)
        assert loc.stability_score == pytest.approx(1.0)
        assert loc.is_known_location is False

        assert snapshot.dbl.state == InteractionState.ENGAGED
        assert snapshot.dbl.cognitive_load_indicator == pytest.approx(0.5)
        assert snapshot.device == DeviceState(0.8, False, NetworkQuality.EXCELLENT)

        assert snapshot.overall_optimality == pytest.approx(1.0)
        assert snapshot.recommended_action == RecommendedAction.PROCEED
        assert snapshot.quality_score == pytest.approx(0.71)

        factors = [(c.factor, c.timeframe_minutes) for c in snapshot.anticipated_changes]
        assert factors == [("energy_level", 60), ("optimal_window", 30.0)]

    @pytest.mark.asyncio
    async def test_cache_serves_within_ttl(self, sensor, providers, clock):
        first = await sensor.get_current_context()
        clock.advance(10)
        assert await sensor.get_current_context() is first
        assert providers.location.calls == 1

        clock.advance(300)
        refreshed = await sensor.get_current_context()
        assert refreshed is not first
        assert refreshed.timestamp == clock()
        assert sensor.get_cached_context() is refreshed

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, sensor, providers):
        await sensor.get_current_context()
        await sensor.get_current_context(force_refresh=True)
        assert providers.location.calls == 2

    @pytest.mark.asyncio
    async def test_network_reading_is_cached(self, sensor, providers, clock):
        await sensor.get_current_context()
        calls = providers.network.calls
        clock.advance(10)
        await sensor.get_current_context(force_refresh=True)
        assert providers.network.calls == calls

        clock.advance(31)
        await sensor.get_current_context(force_refresh=True)
        assert providers.network.calls > calls

    @pytest.mark.asyncio
    async def test_cellular_network_is_public(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(),
            SimulatedNetworkProvider(connection_type="cellular"),
            SimulatedBatteryProvider(),
        )
        snapshot = await build_sensor(providers, clock, logger).get_current_context()
        assert snapshot.location.social_setting == SocialSetting.PUBLIC
        assert snapshot.location.privacy_level == pytest.approx(0.2)
        assert snapshot.device.network_quality == NetworkQuality.GOOD

    @pytest.mark.asyncio
    async def test_library_hint(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(environment_hint=EnvironmentType.LIBRARY),
            SimulatedNetworkProvider(),
            SimulatedBatteryProvider(),
        )
        snapshot = await build_sensor(providers, clock, logger).get_current_context()
        assert snapshot.location.environment == EnvironmentType.LIBRARY
        assert snapshot.location.noise_level == NoiseLevel.QUIET
        assert snapshot.location.distraction_risk == DistractionRisk.LOW

    @pytest.mark.asyncio
    async def test_known_location_overrides_hint(self, sensor, providers):
        coords = providers.location.coordinates
        sensor.add_known_location("Office", coords.latitude, coords.longitude, EnvironmentType.OFFICE)

        snapshot = await sensor.get_current_context()
        assert snapshot.location.environment == EnvironmentType.OFFICE
        assert snapshot.location.is_known_location is True
        assert snapshot.location.privacy_level == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_moving_lowers_stability(self, sensor, providers, clock):
        await sensor.get_current_context()
        start = providers.location.coordinates
        # roughly 500 m north
        providers.location.coordinates = Coordinates(start.latitude + 0.0045, start.longitude)
        clock.advance(60)

        snapshot = await sensor.get_current_context(force_refresh=True)
        assert snapshot.location.stability_score == pytest.approx(0.5, abs=0.01)
        assert "location_stability" in [c.factor for c in snapshot.anticipated_changes]


class TestFallbacks:
    """Each failing sub-layer degrades only its own part of the snapshot."""

    @pytest.mark.asyncio
    async def test_location_permission_denied(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(available=False),
            SimulatedNetworkProvider(),
            SimulatedBatteryProvider(),
        )
        snapshot = await build_sensor(providers, clock, logger).get_current_context()

        assert snapshot.location == LocationContext.fallback()
        assert snapshot.device.network_quality == NetworkQuality.EXCELLENT
        assert logger.get_system_logs(event_type="context_sensor_unavailable", level="WARNING")

    @pytest.mark.asyncio
    async def test_slow_location_times_out(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(delay=0.5),
            SimulatedNetworkProvider(),
            SimulatedBatteryProvider(),
        )
        config = ContextSensorConfig(layer_timeout_seconds=0.05)
        snapshot = await build_sensor(providers, clock, logger, config=config).get_current_context()

        assert snapshot.location == LocationContext.fallback()
        assert logger.get_system_logs(event_type="context_layer_timeout")

    @pytest.mark.asyncio
    async def test_missing_battery_degrades_device_only(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(),
            SimulatedNetworkProvider(),
            SimulatedBatteryProvider(available=False),
        )
        snapshot = await build_sensor(providers, clock, logger).get_current_context()

        assert snapshot.device == DeviceState.fallback()
        assert snapshot.location.environment == EnvironmentType.HOME

    @pytest.mark.asyncio
    async def test_network_failure_means_alone(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(),
            SimulatedNetworkProvider(available=False),
            SimulatedBatteryProvider(),
        )
        snapshot = await build_sensor(providers, clock, logger).get_current_context()

        assert snapshot.device == DeviceState.fallback()
        assert snapshot.location.social_setting == SocialSetting.ALONE
        assert snapshot.location.noise_level == NoiseLevel.QUIET
        assert snapshot.location.privacy_level == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_every_layer_failing_gives_degraded_snapshot(self, clock, logger):
        providers = ContextProviders(
            SimulatedLocationProvider(available=False),
            SimulatedNetworkProvider(),
            SimulatedBatteryProvider(available=False),
        )
        sensor = build_sensor(providers, clock, logger)

        async def broken():
            raise RuntimeError("sensor bus offline")

        sensor._gather_time = broken
        sensor._gather_dbl = broken

        snapshot = await sensor.get_current_context()
        assert snapshot == ContextSnapshot.fallback(MONDAY_10AM, "default")
        assert logger.get_system_logs(event_type="context_all_layers_failed", level="ERROR")


class TestEmission:
    """context.updated is debounced by interval and score delta."""

    @pytest.mark.asyncio
    async def test_debounce_by_interval(self, providers, afternoon, logger, bus):
        sensor = build_sensor(providers, afternoon, logger, bus=bus)
        emitted = []
        bus.subscribe(DomainEventType.CONTEXT_UPDATED, emitted.append)

        first = await sensor.get_current_context()
        assert first.overall_optimality == pytest.approx(0.84)
        assert len(emitted) == 1

        afternoon.advance(10)
        await sensor.get_current_context(force_refresh=True)
        assert len(emitted) == 1

        afternoon.advance(30)
        await sensor.get_current_context(force_refresh=True)
        assert len(emitted) == 2

    @pytest.mark.asyncio
    async def test_large_score_change_emits_early(self, providers, afternoon, logger, bus):
        sensor = build_sensor(providers, afternoon, logger, bus=bus)
        emitted = []
        bus.subscribe(DomainEventType.CONTEXT_UPDATED, emitted.append)

        await sensor.get_current_context()
        now = afternoon.advance(20)
        record_switches(sensor, now)

        snapshot = await sensor.get_current_context(force_refresh=True)
        assert snapshot.dbl.state == InteractionState.FRAGMENTED
        assert snapshot.overall_optimality == pytest.approx(0.61)
        assert len(emitted) == 2
        assert emitted[1].payload is snapshot


class TestDigitalBodyLanguage:

    def test_no_interactions(self, sensor, clock):
        dbl = sensor.digital_body_language(clock())
        assert dbl.state == InteractionState.ENGAGED
        assert dbl.app_switch_frequency == 0.0
        assert dbl.attention_span == 20.0
        assert dbl.cognitive_load_indicator == pytest.approx(0.5)
        assert dbl.typing_accuracy == 1.0

    def test_frequent_switching_fragments(self, sensor, clock):
        record_switches(sensor, clock())
        dbl = sensor.digital_body_language(clock())

        assert dbl.app_switch_frequency == pytest.approx(2.5)
        assert dbl.cognitive_load_indicator == pytest.approx(0.8)
        assert dbl.state == InteractionState.FRAGMENTED
        assert dbl.attention_span == pytest.approx(2.0)
        assert all(p == pytest.approx(20000) for p in dbl.interaction_pauses)

    def test_fast_scrolling_overwhelms(self, sensor, clock):
        now = clock()
        record_switches(sensor, now)
        sensor.record_interaction(Interaction(now, InteractionType.SCROLL, {"velocity": 2000}))

        dbl = sensor.digital_body_language(now)
        assert dbl.scroll_velocity == pytest.approx(2000)
        assert dbl.cognitive_load_indicator == pytest.approx(1.0)
        assert dbl.state == InteractionState.OVERWHELMED

    def test_rapid_corrections_raise_stress(self, sensor, clock):
        now = clock()
        for i in range(7):
            sensor.record_interaction(Interaction(
                now - 0.6 + i * 0.1,
                InteractionType.TYPE,
                {"is_correction": i < 3},
            ))

        dbl = sensor.digital_body_language(now)
        assert dbl.stress_indicator == pytest.approx(0.5)
        assert dbl.typing_speed == pytest.approx(200.0)
        assert dbl.typing_accuracy == pytest.approx(0.95)

    def test_interaction_cap_keeps_half(self, providers, clock, logger):
        sensor = build_sensor(providers, clock, logger, config=ContextSensorConfig(interaction_cap=10))
        for i in range(11):
            sensor.record_interaction(Interaction(clock() + i, InteractionType.TOUCH))
        assert len(sensor.get_interactions()) == 5

    def test_dbl_published_every_nth_interaction(self, sensor, bus, clock):
        published = []
        bus.subscribe(DomainEventType.DBL_UPDATED, published.append)
        for i in range(25):
            sensor.record_interaction(Interaction(clock() + i, InteractionType.TOUCH))
        assert len(published) == 2


class TestPatternLearning:

    @pytest.mark.asyncio
    async def test_optimal_slot_and_location_are_learned(self, sensor):
        await sensor.get_current_context()
        patterns = sensor.get_learned_patterns()

        assert patterns.optimal_times == [OptimalTimeEntry(10.0, "monday", 1.0)]
        assert len(patterns.known_locations) == 1
        assert patterns.known_locations[0].name == "Location 1"
        assert patterns.known_locations[0].environment == EnvironmentType.HOME
        assert patterns.known_locations[0].performance_history == [1.0]

    @pytest.mark.asyncio
    async def test_learned_slot_overrides_circadian_prior(self, providers, afternoon, logger):
        sensor = build_sensor(providers, afternoon, logger)
        sensor.set_learned_patterns(LearnedPatterns(optimal_times=[OptimalTimeEntry(13.0, "monday", 0.9)]))

        snapshot = await sensor.get_current_context()
        assert snapshot.time.historical_performance == pytest.approx(0.9)
        assert snapshot.time.is_optimal_window is True

    @pytest.mark.asyncio
    async def test_patterns_round_trip_through_store(self, sensor, store, providers, clock, logger):
        await sensor.get_current_context()
        assert sensor.save_patterns() is True

        fresh = build_sensor(providers, clock, logger, store=store)
        assert fresh.load_patterns() is True
        assert fresh.historical_performance(10, "monday") == pytest.approx(1.0)

    def test_load_without_saved_patterns(self, sensor):
        assert sensor.load_patterns() is False

    def test_save_failure_is_reported(self, providers, clock, logger):
        sensor = build_sensor(providers, clock, logger, store=FailingPatternStore())
        assert sensor.save_patterns() is False
        assert logger.get_system_logs(event_type="patterns_save_failed")

    @pytest.mark.asyncio
    async def test_session_switch_keeps_patterns(self, sensor, clock):
        await sensor.get_current_context()
        sensor.record_interaction(Interaction(clock(), InteractionType.TOUCH))

        sensor.set_session("session-2")
        assert sensor.session_id == "session-2"
        assert sensor.get_cached_context() is None
        assert sensor.get_interactions() == []
        assert len(sensor.get_learned_patterns().known_locations) == 1

        snapshot = await sensor.get_current_context()
        assert snapshot.session_id == "session-2"

    def test_session_switch_leaves_caller_config_alone(self, providers, clock, logger):
        config = ContextSensorConfig(session_id="lab-3")
        sensor = build_sensor(providers, clock, logger, config=config)

        sensor.set_session("lab-4")

        assert sensor.session_id == "lab-4"
        assert config.session_id == "lab-3"


class TestRetention:

    @pytest.mark.asyncio
    async def test_snapshot_cap(self, providers, clock, logger, store):
        sensor = build_sensor(providers, clock, logger, store=store, retention=RetentionConfig(max_snapshots=3))
        for _ in range(5):
            await sensor.get_current_context(force_refresh=True)
            clock.advance(60)
        assert store.count_snapshots() == 3

    @pytest.mark.asyncio
    async def test_retention_window(self, providers, clock, logger, store):
        sensor = build_sensor(providers, clock, logger, store=store, retention=RetentionConfig(retention_days=1))
        await sensor.get_current_context()
        clock.advance(2 * 86400)
        await sensor.get_current_context()
        assert store.count_snapshots() == 1

    @pytest.mark.asyncio
    async def test_emergency_cleanup_when_prune_fails(self, providers, clock, logger):
        store = FailingPruneStore()
        sensor = build_sensor(providers, clock, logger, store=store)
        await sensor.get_current_context()
        clock.advance(2 * 3600)
        await sensor.get_current_context()

        assert store.count_snapshots() == 1
        assert logger.get_system_logs(event_type="snapshot_emergency_cleanup", level="WARNING")


class TestMonitoring:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, sensor, store):
        await sensor.start_monitoring(interval_seconds=3600)
        assert sensor.is_monitoring()
        await asyncio.sleep(0.05)
        assert sensor.get_cached_context() is not None

        await sensor.stop_monitoring()
        assert not sensor.is_monitoring()
        assert store.load_patterns() is not None

        # A second stop is a no-op
        await sensor.stop_monitoring()

    @pytest.mark.asyncio
    async def test_analytics(self, sensor, clock):
        await sensor.get_current_context()
        clock.advance(60)
        await sensor.get_current_context(force_refresh=True)

        analytics = sensor.get_context_analytics(days=7)
        assert analytics["snapshot_count"] == 2
        assert analytics["average_optimality"] == pytest.approx(1.0)
        assert analytics["recommended_actions"] == {"proceed": 2}
        assert analytics["optimal_windows"] == [{"hour": 10.0, "day_of_week": "monday", "performance": 1.0}]
        assert analytics["known_locations"][0]["visits"] == 2

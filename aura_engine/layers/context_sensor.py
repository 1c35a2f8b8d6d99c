"""
Context Sensing Layer

Output: ContextSnapshot, on demand or every monitoring interval

Four sub-layers are gathered concurrently: time intelligence, location and
social setting, digital body language and device state. Each sub-layer has
its own timeout and documented fallback, so a failing sensor degrades the
snapshot instead of failing it. Only when every sub-layer fails is the fully
degraded snapshot returned.

Snapshots are cached for a TTL and their broadcast is debounced. Each fresh
snapshot also feeds incremental learning of good time slots and known
locations, which survive session switches.
"""
import asyncio
import contextlib
import math
import time
from collections import deque
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from aura_engine.services.event_bus import EventBus
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.services.sensors.base import ContextProviders, NetworkReading, SensorUnavailableError
from aura_engine.services.storage.base import PatternStore, StorageError
from aura_engine.types.cognitive import clamp
from aura_engine.types.config import ContextSensorConfig, RetentionConfig
from aura_engine.types.context import (
    AnticipatedChange,
    ContextSnapshot,
    Coordinates,
    DeviceState,
    DigitalBodyLanguage,
    DistractionRisk,
    EnergyLevel,
    EnvironmentType,
    Interaction,
    InteractionState,
    InteractionType,
    KnownLocation,
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
from aura_engine.types.domain_events import DomainEvent, DomainEventType


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
EARTH_RADIUS_M = 6371e3

OPTIMAL_PERFORMANCE = 0.7
RECENT_INTERACTION_SECONDS = 300
SWITCH_WINDOW_MINUTES = 10
RAPID_ACTION_SECONDS = 0.5


def haversine_m(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def time_of_day_for(hour: float) -> TimeOfDay:
    if hour < 6:
        return TimeOfDay.LATE_NIGHT
    if hour < 9:
        return TimeOfDay.EARLY_MORNING
    if hour < 12:
        return TimeOfDay.MORNING
    if hour < 14:
        return TimeOfDay.MIDDAY
    if hour < 18:
        return TimeOfDay.AFTERNOON
    if hour < 22:
        return TimeOfDay.EVENING
    return TimeOfDay.LATE_NIGHT


def energy_level_for(performance: float) -> EnergyLevel:
    if performance > 0.8:
        return EnergyLevel.PEAK
    if performance > 0.7:
        return EnergyLevel.HIGH
    if performance > 0.5:
        return EnergyLevel.MEDIUM
    if performance > 0.3:
        return EnergyLevel.LOW
    return EnergyLevel.RECOVERY


def default_performance(hour: int) -> float:
    """Circadian prior used until the slot has learned entries."""
    if 9 <= hour <= 11:
        return 0.85
    if 14 <= hour <= 16:
        return 0.75
    if 19 <= hour <= 21:
        return 0.65
    return 0.45


def social_setting_for(network: Optional[NetworkReading]) -> SocialSetting:
    if network is None or not network.is_connected:
        return SocialSetting.ALONE
    if network.connection_type == "wifi":
        return SocialSetting.PRIVATE
    if network.connection_type == "cellular":
        return SocialSetting.PUBLIC
    return SocialSetting.ALONE


def noise_and_risk_for(
    environment: EnvironmentType,
    social: SocialSetting,
) -> Tuple[NoiseLevel, DistractionRisk]:
    if environment == EnvironmentType.LIBRARY:
        return NoiseLevel.QUIET, DistractionRisk.LOW
    if environment == EnvironmentType.HOME and social == SocialSetting.ALONE:
        return NoiseLevel.QUIET, DistractionRisk.LOW
    if environment == EnvironmentType.OFFICE:
        return NoiseLevel.MODERATE, DistractionRisk.MEDIUM
    if environment == EnvironmentType.COMMUTE:
        return NoiseLevel.NOISY, DistractionRisk.HIGH
    return NoiseLevel.MODERATE, DistractionRisk.MEDIUM


def privacy_for(environment: EnvironmentType, social: SocialSetting) -> float:
    if environment == EnvironmentType.HOME and social == SocialSetting.ALONE:
        return 1.0
    if environment == EnvironmentType.LIBRARY and social == SocialSetting.ALONE:
        return 0.8
    if environment == EnvironmentType.OFFICE and social == SocialSetting.PRIVATE:
        return 0.7
    if social == SocialSetting.WITH_OTHERS:
        return 0.4
    if social == SocialSetting.PUBLIC:
        return 0.2
    return 0.6


def network_quality_for(network: NetworkReading) -> NetworkQuality:
    if not network.is_connected:
        return NetworkQuality.OFFLINE
    if network.connection_type in ("wifi", "ethernet"):
        return NetworkQuality.EXCELLENT
    if network.connection_type == "cellular":
        return NetworkQuality.GOOD
    return NetworkQuality.FAIR


class ContextSensor:
    """
    Produces ContextSnapshots and learns time/location patterns.
    """

    def __init__(
        self,
        providers: ContextProviders,
        config: Optional[ContextSensorConfig] = None,
        retention: Optional[RetentionConfig] = None,
        store: Optional[PatternStore] = None,
        bus: Optional[EventBus] = None,
        logger: Optional[LoggerService] = None,
        clock: Callable[[], float] = time.time,
        tz: Optional[tzinfo] = None,
    ):
        """
        Initialize the context sensor.

        Args:
            providers: Location, network and battery adapters.
            config: Cache, debounce and learning parameters.
            retention: Snapshot housekeeping limits.
            store: Snapshot and pattern persistence. Optional; without it
                snapshots are not retained and patterns live in memory only.
            bus: Event bus for context.updated and dbl.updated.
            logger: Shared logger service.
            clock: Time source (unix seconds).
            tz: Timezone for circadian lookups. Defaults to local time.
        """
        self._providers = providers
        self._config = config or ContextSensorConfig()
        self._retention = retention or RetentionConfig()
        self._store = store
        self._bus = bus
        self._logger = logger or get_logger()
        self._clock = clock
        self._tz = tz
        self._session_id = self._config.session_id

        self._cached: Optional[ContextSnapshot] = None
        self._last_emitted: Optional[ContextSnapshot] = None
        self._network_cache: Optional[Tuple[NetworkReading, float]] = None
        self._positions: deque = deque(maxlen=self._config.position_history_size)

        self._interactions: List[Interaction] = []
        self._interaction_count: int = 0

        self._patterns = LearnedPatterns()

        self._monitor_task: Optional[asyncio.Task] = None
        self._monitor_interval: float = self._config.monitoring_interval_seconds

    def configure(self, config: ContextSensorConfig) -> None:
        self._config = config
        self._session_id = config.session_id
        self._positions = deque(self._positions, maxlen=config.position_history_size)
        self._logger.system(
            "context_sensor_config_updated",
            {
                "session_id": config.session_id,
                "cache_ttl_seconds": config.cache_ttl_seconds,
                "monitoring_interval_seconds": config.monitoring_interval_seconds,
            },
            level="DEBUG",
        )

    def set_bus(self, bus: Optional[EventBus]) -> None:
        self._bus = bus

    @property
    def session_id(self) -> str:
        return self._session_id

    def set_session(self, session_id: str) -> None:
        """
        Start a new session. Interaction history and the snapshot cache are
        cleared; learned patterns are kept.
        """
        self._session_id = session_id
        self._cached = None
        self._last_emitted = None
        self._interactions = []
        self._interaction_count = 0

    # --- Snapshot ---

    async def get_current_context(self, force_refresh: bool = False) -> ContextSnapshot:
        """
        Return the cached snapshot while it is younger than the TTL, else
        gather a new one. Never raises for sensor failures.
        """
        now = self._clock()
        if (
            not force_refresh
            and self._cached is not None
            and now - self._cached.timestamp < self._config.cache_ttl_seconds
        ):
            return self._cached

        snapshot = await self._capture(now)
        self._cached = snapshot

        self._learn_patterns(snapshot)
        self._retain(snapshot)

        if self._should_emit(snapshot):
            self._last_emitted = snapshot
            if self._bus is not None:
                self._bus.publish(DomainEvent(
                    event_type=DomainEventType.CONTEXT_UPDATED,
                    payload=snapshot,
                    timestamp=snapshot.timestamp,
                ))

        self._logger.session(
            "context_snapshot_captured",
            {
                "session_id": snapshot.session_id,
                "optimality": round(snapshot.overall_optimality, 3),
                "quality": round(snapshot.quality_score, 3),
                "action": snapshot.recommended_action.value,
                "environment": snapshot.location.environment.value,
                "interaction_state": snapshot.dbl.state.value,
            },
        )
        return snapshot

    def get_cached_context(self) -> Optional[ContextSnapshot]:
        return self._cached

    async def _capture(self, now: float) -> ContextSnapshot:
        results = await asyncio.gather(
            self._guarded("time", self._gather_time, TimeIntelligence.fallback()),
            self._guarded("location", self._gather_location, LocationContext.fallback()),
            self._guarded("dbl", self._gather_dbl, DigitalBodyLanguage.fallback()),
            self._guarded("device", self._gather_device, DeviceState.fallback()),
        )
        if not any(ok for _, ok in results):
            self._logger.system("context_all_layers_failed", {"timestamp": now}, level="ERROR")
            return ContextSnapshot.fallback(now, self._session_id)

        (time_ctx, _), (location, _), (dbl, _), (device, _) = results

        optimality = self.compute_optimality(time_ctx, location, dbl)
        return ContextSnapshot(
            timestamp=now,
            session_id=self._session_id,
            time=time_ctx,
            location=location,
            dbl=dbl,
            device=device,
            overall_optimality=optimality,
            recommended_action=self.recommend_action(optimality, time_ctx, location),
            quality_score=self.compute_quality(time_ctx, location, dbl),
            anticipated_changes=tuple(self.anticipate_changes(time_ctx, location, now)),
        )

    async def _guarded(
        self,
        layer: str,
        gather: Callable[[], Awaitable[Any]],
        fallback: Any,
    ) -> Tuple[Any, bool]:
        """Run one sub-layer under its timeout; failures yield the fallback."""
        try:
            result = await asyncio.wait_for(gather(), timeout=self._config.layer_timeout_seconds)
            return result, True
        except asyncio.TimeoutError:
            self._logger.system(
                "context_layer_timeout",
                {"layer": layer, "timeout_seconds": self._config.layer_timeout_seconds},
                level="WARNING",
            )
        except SensorUnavailableError as e:
            self._logger.system(
                "context_sensor_unavailable",
                {"layer": layer, "sensor": e.sensor, "reason": e.reason},
                level="WARNING",
            )
        except Exception as e:
            self._logger.system(
                "context_layer_error",
                {"layer": layer, "error": str(e)},
                level="WARNING",
            )
        return fallback, False

    # --- Time intelligence ---

    async def _gather_time(self) -> TimeIntelligence:
        return self.time_intelligence(self._clock())

    def time_intelligence(self, timestamp: float) -> TimeIntelligence:
        dt = datetime.fromtimestamp(timestamp, tz=self._tz)
        hour = dt.hour + dt.minute / 60
        day = WEEKDAYS[dt.weekday()]
        performance = self.historical_performance(dt.hour, day)
        return TimeIntelligence(
            circadian_hour=hour,
            time_of_day=time_of_day_for(hour),
            day_of_week=day,
            is_optimal_window=performance > OPTIMAL_PERFORMANCE,
            energy_level=energy_level_for(performance),
            historical_performance=performance,
            next_optimal_window=self.next_optimal_window(timestamp),
        )

    def historical_performance(self, hour: float, day_of_week: str) -> float:
        """Mean learned performance within two hours on the same weekday."""
        matching = [
            e.performance for e in self._patterns.optimal_times
            if e.day_of_week == day_of_week and abs(e.hour - hour) < 2
        ]
        if matching:
            return clamp(sum(matching) / len(matching))
        return default_performance(int(hour))

    def next_optimal_window(self, timestamp: float) -> Optional[float]:
        for offset in range(1, 25):
            candidate = timestamp + offset * 3600
            dt = datetime.fromtimestamp(candidate, tz=self._tz)
            if self.historical_performance(dt.hour, WEEKDAYS[dt.weekday()]) > OPTIMAL_PERFORMANCE:
                return candidate
        return None

    # --- Location ---

    async def _gather_location(self) -> LocationContext:
        reading = await self._providers.location.get_location()
        network = await self._network_or_none()
        coords = reading.coordinates

        known = self.find_known_location(coords)
        if known is not None:
            environment = known.environment
        elif reading.environment_hint is not None:
            environment = reading.environment_hint
        else:
            environment = EnvironmentType.UNKNOWN

        social = social_setting_for(network)
        noise, risk = noise_and_risk_for(environment, social)

        self._positions.append(coords)
        return LocationContext(
            environment=environment,
            noise_level=noise,
            social_setting=social,
            stability_score=self._location_stability(),
            privacy_level=privacy_for(environment, social),
            distraction_risk=risk,
            coordinates=coords,
            is_known_location=known is not None,
            location_confidence=0.8,
        )

    def find_known_location(self, coords: Coordinates) -> Optional[KnownLocation]:
        for location in self._patterns.known_locations:
            distance = haversine_m(coords, Coordinates(location.latitude, location.longitude))
            if distance <= self._config.known_location_radius_m:
                return location
        return None

    def _location_stability(self) -> float:
        if len(self._positions) < 2:
            return 1.0
        current = self._positions[-1]
        previous = list(self._positions)[:-1]
        mean_distance = sum(haversine_m(current, p) for p in previous) / len(previous)
        return max(0.0, 1 - mean_distance / 1000)

    # --- Digital body language ---

    def record_interaction(self, interaction: Interaction) -> None:
        """
        Append one interaction. Every Nth interaction publishes a fresh
        digital body language reading on dbl.updated.
        """
        self._interactions.append(interaction)
        if len(self._interactions) > self._config.interaction_cap:
            self._interactions = self._interactions[-(self._config.interaction_cap // 2):]
        self._interaction_count += 1

        if self._interaction_count % self._config.dbl_publish_every == 0 and self._bus is not None:
            self._bus.publish(DomainEvent(
                event_type=DomainEventType.DBL_UPDATED,
                payload=self.digital_body_language(self._clock()),
                timestamp=interaction.timestamp,
            ))

    def get_interactions(self) -> List[Interaction]:
        return list(self._interactions)

    async def _gather_dbl(self) -> DigitalBodyLanguage:
        return self.digital_body_language(self._clock())

    def digital_body_language(self, now: float) -> DigitalBodyLanguage:
        recent = [i for i in self._interactions if now - i.timestamp <= RECENT_INTERACTION_SECONDS]
        switches = [
            i for i in self._interactions
            if i.type == InteractionType.SWITCH and now - i.timestamp <= SWITCH_WINDOW_MINUTES * 60
        ]
        switch_frequency = len(switches) / SWITCH_WINDOW_MINUTES

        scrolls = [i for i in recent if i.type == InteractionType.SCROLL]
        scroll_velocity = (
            sum(float(i.metadata.get("velocity", 0.0)) for i in scrolls) / len(scrolls)
            if scrolls else 0.0
        )

        typing = [i for i in recent if i.type == InteractionType.TYPE]
        if typing:
            typing_speed = sum(float(i.metadata.get("speed", 200.0)) for i in typing) / len(typing)
            typing_accuracy = clamp(
                sum(float(i.metadata.get("accuracy", 0.95)) for i in typing) / len(typing)
            )
        else:
            typing_speed, typing_accuracy = 0.0, 1.0

        pauses = tuple(
            (b.timestamp - a.timestamp) * 1000
            for a, b in zip(recent, recent[1:])
        )[-10:]

        attention_span = self._attention_span(switches)
        load = self._interaction_load(switch_frequency, scroll_velocity, pauses)
        stress = self._interaction_stress(recent, typing)

        return DigitalBodyLanguage(
            state=self._interaction_state(stress, load, switch_frequency, attention_span),
            app_switch_frequency=switch_frequency,
            scroll_velocity=scroll_velocity,
            typing_speed=typing_speed,
            typing_accuracy=typing_accuracy,
            interaction_pauses=pauses,
            attention_span=attention_span,
            cognitive_load_indicator=load,
            stress_indicator=stress,
        )

    @staticmethod
    def _attention_span(switches: List[Interaction]) -> float:
        """Mean minutes between app switches, clamped to 2-60."""
        if len(switches) < 2:
            return 20.0
        gaps = [(b.timestamp - a.timestamp) / 60 for a, b in zip(switches, switches[1:])]
        return min(60.0, max(2.0, sum(gaps) / len(gaps)))

    @staticmethod
    def _interaction_load(switch_frequency: float, scroll_velocity: float, pauses: Tuple[float, ...]) -> float:
        load = 0.5
        if switch_frequency > 2:
            load += 0.3
        elif switch_frequency > 1:
            load += 0.1
        if scroll_velocity > 1000:
            load += 0.2
        if len(pauses) > 3:
            mean = sum(pauses) / len(pauses)
            variance = sum((p - mean) ** 2 for p in pauses) / len(pauses)
            if variance > 10000:
                load += 0.2
        return clamp(load)

    @staticmethod
    def _interaction_stress(recent: List[Interaction], typing: List[Interaction]) -> float:
        stress = 0.0
        rapid = sum(
            1 for a, b in zip(recent, recent[1:])
            if b.timestamp - a.timestamp < RAPID_ACTION_SECONDS
        )
        if rapid > 5:
            stress += 0.3
        if typing:
            corrections = sum(1 for i in typing if i.metadata.get("is_correction"))
            if corrections / len(typing) > 0.2:
                stress += 0.2
        return clamp(stress)

    @staticmethod
    def _interaction_state(
        stress: float,
        load: float,
        switch_frequency: float,
        attention_span: float,
    ) -> InteractionState:
        if stress > 0.7 or load > 0.8:
            return InteractionState.OVERWHELMED
        if switch_frequency > 2 or attention_span < 5:
            return InteractionState.FRAGMENTED
        if switch_frequency > 1 or load > 0.6:
            return InteractionState.RESTLESS
        if attention_span > 15 and load < 0.4:
            return InteractionState.FOCUSED
        return InteractionState.ENGAGED

    # --- Device ---

    async def _gather_device(self) -> DeviceState:
        battery = await self._providers.battery.get_battery()
        network = await self._network_reading()
        return DeviceState(
            battery_level=clamp(battery.level),
            is_charging=battery.is_charging,
            network_quality=network_quality_for(network),
        )

    async def _network_reading(self) -> NetworkReading:
        """Network state, cached for network_cache_ttl_seconds."""
        now = self._clock()
        if self._network_cache is not None:
            reading, read_at = self._network_cache
            if now - read_at < self._config.network_cache_ttl_seconds:
                return reading
        reading = await self._providers.network.get_network()
        self._network_cache = (reading, now)
        return reading

    async def _network_or_none(self) -> Optional[NetworkReading]:
        try:
            return await self._network_reading()
        except SensorUnavailableError as e:
            self._logger.system(
                "context_sensor_unavailable",
                {"layer": "location", "sensor": e.sensor, "reason": e.reason},
                level="WARNING",
            )
            return None

    # --- Aggregated insights ---

    @staticmethod
    def compute_optimality(
        time_ctx: TimeIntelligence,
        location: LocationContext,
        dbl: DigitalBodyLanguage,
    ) -> float:
        score = 0.5

        if time_ctx.is_optimal_window:
            score += 0.2
        score += (time_ctx.historical_performance - 0.5) * 0.2

        if location.environment in (EnvironmentType.LIBRARY, EnvironmentType.HOME):
            score += 0.15
        if location.social_setting in (SocialSetting.ALONE, SocialSetting.PRIVATE):
            score += 0.1
        if location.distraction_risk in (DistractionRisk.VERY_LOW, DistractionRisk.LOW):
            score += 0.1

        if dbl.state == InteractionState.FOCUSED:
            score += 0.15
        elif dbl.state == InteractionState.ENGAGED:
            score += 0.1
        elif dbl.state in (InteractionState.OVERWHELMED, InteractionState.FRAGMENTED):
            score -= 0.1
        score -= (dbl.cognitive_load_indicator - 0.5) * 0.1

        return clamp(score)

    @staticmethod
    def recommend_action(
        optimality: float,
        time_ctx: TimeIntelligence,
        location: LocationContext,
    ) -> RecommendedAction:
        if optimality > 0.8:
            return RecommendedAction.PROCEED
        if time_ctx.energy_level in (EnergyLevel.RECOVERY, EnergyLevel.LOW):
            return RecommendedAction.TAKE_BREAK
        if location.distraction_risk in (DistractionRisk.HIGH, DistractionRisk.VERY_HIGH):
            return RecommendedAction.OPTIMIZE_ENVIRONMENT
        if optimality < 0.4:
            return RecommendedAction.RESCHEDULE
        if optimality < 0.6:
            return RecommendedAction.OPTIMIZE_ENVIRONMENT
        return RecommendedAction.PROCEED

    @staticmethod
    def compute_quality(
        time_ctx: TimeIntelligence,
        location: LocationContext,
        dbl: DigitalBodyLanguage,
    ) -> float:
        """0.4 time + 0.35 location + 0.25 interaction."""
        low_risk = location.distraction_risk in (DistractionRisk.VERY_LOW, DistractionRisk.LOW)
        location_score = (location.stability_score + location.privacy_level + (1.0 if low_risk else 0.5)) / 3
        return clamp(
            time_ctx.historical_performance * 0.4
            + location_score * 0.35
            + (1 - dbl.cognitive_load_indicator) * 0.25
        )

    @staticmethod
    def anticipate_changes(
        time_ctx: TimeIntelligence,
        location: LocationContext,
        now: float,
    ) -> List[AnticipatedChange]:
        changes: List[AnticipatedChange] = []
        if time_ctx.energy_level == EnergyLevel.PEAK:
            changes.append(AnticipatedChange("energy_level", EnergyLevel.HIGH.value, 60, 0.8))
        if time_ctx.is_optimal_window and time_ctx.next_optimal_window is not None:
            minutes_until = (time_ctx.next_optimal_window - now) / 60
            changes.append(AnticipatedChange("optimal_window", False, max(30.0, minutes_until / 2), 0.7))
        if location.stability_score < 0.7:
            changes.append(AnticipatedChange("location_stability", 0.9, 15, 0.6))
        return changes

    def _should_emit(self, snapshot: ContextSnapshot) -> bool:
        last = self._last_emitted
        if last is None:
            return True
        if snapshot.timestamp - last.timestamp >= self._config.emit_min_interval_seconds:
            return True
        delta = self._config.emit_score_delta
        return (
            abs(snapshot.overall_optimality - last.overall_optimality) > delta
            or abs(snapshot.quality_score - last.quality_score) > delta
        )

    # --- Pattern learning ---

    def _learn_patterns(self, snapshot: ContextSnapshot) -> None:
        time_ctx = snapshot.time
        optimality = snapshot.overall_optimality

        if time_ctx.is_optimal_window:
            entry = next(
                (
                    e for e in self._patterns.optimal_times
                    if e.day_of_week == time_ctx.day_of_week and abs(e.hour - time_ctx.circadian_hour) < 1
                ),
                None,
            )
            rate = self._config.optimal_time_learning_rate
            if entry is not None:
                entry.performance = (1 - rate) * entry.performance + rate * optimality
            else:
                self._patterns.optimal_times.append(
                    OptimalTimeEntry(time_ctx.circadian_hour, time_ctx.day_of_week, optimality)
                )

        coords = snapshot.location.coordinates
        if optimality > self._config.known_location_min_optimality and coords is not None:
            known = self.find_known_location(coords)
            if known is not None:
                known.performance_history.append(optimality)
                cap = self._config.location_performance_cap
                if len(known.performance_history) > cap:
                    known.performance_history = known.performance_history[-cap:]
            else:
                name = f"Location {len(self._patterns.known_locations) + 1}"
                self._patterns.known_locations.append(KnownLocation(
                    name=name,
                    latitude=coords.latitude,
                    longitude=coords.longitude,
                    environment=snapshot.location.environment,
                    performance_history=[optimality],
                ))
                self._logger.session(
                    "known_location_learned",
                    {"name": name, "environment": snapshot.location.environment.value},
                )

    def add_known_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        environment: EnvironmentType = EnvironmentType.UNKNOWN,
    ) -> KnownLocation:
        location = KnownLocation(name=name, latitude=latitude, longitude=longitude, environment=environment)
        self._patterns.known_locations.append(location)
        self._logger.session(
            "known_location_added",
            {"name": name, "environment": environment.value},
        )
        return location

    def get_learned_patterns(self) -> LearnedPatterns:
        return LearnedPatterns.from_dict(self._patterns.to_dict())

    def set_learned_patterns(self, patterns: LearnedPatterns) -> None:
        self._patterns = LearnedPatterns.from_dict(patterns.to_dict())

    def load_patterns(self) -> bool:
        """Seed learned patterns from storage. Returns True if any were found."""
        if self._store is None:
            return False
        try:
            patterns = self._store.load_patterns()
        except StorageError as e:
            self._logger.system("patterns_load_failed", {"error": str(e)}, level="ERROR")
            return False
        if patterns is None:
            return False
        self._patterns = patterns
        self._logger.system(
            "patterns_loaded",
            {
                "optimal_times": len(patterns.optimal_times),
                "known_locations": len(patterns.known_locations),
            },
            level="DEBUG",
        )
        return True

    def save_patterns(self) -> bool:
        if self._store is None:
            return False
        try:
            self._store.save_patterns(self._patterns)
        except StorageError as e:
            self._logger.system("patterns_save_failed", {"error": str(e)}, level="ERROR")
            return False
        return True

    # --- Retention ---

    def _retain(self, snapshot: ContextSnapshot) -> None:
        if self._store is None:
            return
        try:
            self._store.append_snapshot(snapshot)
        except StorageError as e:
            self._logger.system("snapshot_append_failed", {"error": str(e)}, level="ERROR")
            return
        self.cleanup()

    def cleanup(self) -> int:
        """
        Prune stored snapshots beyond the retention window and hard cap.
        If that fails, delete everything older than the emergency window.

        Returns:
            Number of snapshots removed.
        """
        if self._store is None:
            return 0
        now = self._clock()
        cutoff = now - self._retention.retention_days * 86400
        try:
            removed = self._store.prune_snapshots(cutoff, self._retention.max_snapshots)
        except StorageError as e:
            self._logger.system("snapshot_cleanup_failed", {"error": str(e)}, level="ERROR")
            return self._emergency_cleanup(now)

        if removed:
            self._logger.system("snapshots_pruned", {"removed": removed}, level="DEBUG")
        return removed

    def _emergency_cleanup(self, now: float) -> int:
        cutoff = now - self._retention.emergency_window_seconds
        try:
            removed = self._store.delete_snapshots_before(cutoff)
        except StorageError as e:
            self._logger.system("snapshot_emergency_cleanup_failed", {"error": str(e)}, level="ERROR")
            return 0
        self._logger.system("snapshot_emergency_cleanup", {"removed": removed}, level="WARNING")
        return removed

    # --- Monitoring ---

    def is_monitoring(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    async def start_monitoring(self, interval_seconds: Optional[float] = None) -> None:
        """Refresh the context every interval until stop_monitoring."""
        if self.is_monitoring():
            return
        self._monitor_interval = interval_seconds or self._config.monitoring_interval_seconds
        self._monitor_task = asyncio.create_task(self._monitor_loop())
        self._logger.system(
            "context_monitoring_started",
            {"interval_seconds": self._monitor_interval},
            level="INFO",
        )

    async def stop_monitoring(self) -> None:
        """Cancel the loop and persist learned patterns. A second call is a no-op."""
        if self._monitor_task is None:
            return
        task, self._monitor_task = self._monitor_task, None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.save_patterns()
        self._logger.system("context_monitoring_stopped", {}, level="INFO")

    async def _monitor_loop(self) -> None:
        try:
            while True:
                try:
                    await self.get_current_context(force_refresh=True)
                except Exception as e:
                    self._logger.system("context_monitoring_error", {"error": str(e)}, level="ERROR")
                await asyncio.sleep(self._monitor_interval)
        except asyncio.CancelledError:
            self._logger.system("context_monitoring_cancelled", {}, level="DEBUG")
            raise

    # --- Analytics ---

    def get_context_analytics(self, days: float = 7.0) -> Dict[str, Any]:
        """Learned windows, known locations and stored-snapshot aggregates."""
        snapshots = []
        if self._store is not None:
            try:
                snapshots = self._store.get_snapshots(self._clock() - days * 86400)
            except StorageError as e:
                self._logger.system("analytics_read_failed", {"error": str(e)}, level="ERROR")

        actions: Dict[str, int] = {}
        for s in snapshots:
            actions[s.recommended_action.value] = actions.get(s.recommended_action.value, 0) + 1

        best_times = sorted(self._patterns.optimal_times, key=lambda e: e.performance, reverse=True)[:5]
        return {
            "days": days,
            "snapshot_count": len(snapshots),
            "average_optimality": (
                sum(s.overall_optimality for s in snapshots) / len(snapshots) if snapshots else None
            ),
            "average_quality": (
                sum(s.quality_score for s in snapshots) / len(snapshots) if snapshots else None
            ),
            "recommended_actions": actions,
            "optimal_windows": [
                {"hour": round(e.hour, 2), "day_of_week": e.day_of_week, "performance": round(e.performance, 3)}
                for e in best_times
            ],
            "known_locations": [
                {
                    "name": loc.name,
                    "environment": loc.environment.value,
                    "visits": len(loc.performance_history),
                    "average_performance": (
                        sum(loc.performance_history) / len(loc.performance_history)
                        if loc.performance_history else None
                    ),
                }
                for loc in self._patterns.known_locations
            ],
        }

"""
Type definitions for environmental and behavioral context.

A ContextSnapshot bundles four sub-layers (time intelligence, location,
digital body language, device state) plus aggregated insights. Snapshots
are immutable; the next sensing tick supersedes them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TimeOfDay(Enum):
    EARLY_MORNING = "early_morning"
    MORNING = "morning"
    MIDDAY = "midday"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    LATE_NIGHT = "late_night"


class EnergyLevel(Enum):
    PEAK = "peak"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    RECOVERY = "recovery"


class EnvironmentType(Enum):
    HOME = "home"
    OFFICE = "office"
    LIBRARY = "library"
    COMMUTE = "commute"
    OUTDOOR = "outdoor"
    UNKNOWN = "unknown"


class NoiseLevel(Enum):
    SILENT = "silent"
    QUIET = "quiet"
    MODERATE = "moderate"
    NOISY = "noisy"
    VERY_NOISY = "very_noisy"


class SocialSetting(Enum):
    ALONE = "alone"
    WITH_OTHERS = "with_others"
    PUBLIC = "public"
    PRIVATE = "private"


class DistractionRisk(Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class InteractionState(Enum):
    """Digital body language regime derived from interaction cadence."""
    ENGAGED = "engaged"
    FRAGMENTED = "fragmented"
    RESTLESS = "restless"
    FOCUSED = "focused"
    OVERWHELMED = "overwhelmed"


class NetworkQuality(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    OFFLINE = "offline"


class RecommendedAction(Enum):
    PROCEED = "proceed"
    OPTIMIZE_ENVIRONMENT = "optimize_environment"
    TAKE_BREAK = "take_break"
    RESCHEDULE = "reschedule"


class InteractionType(Enum):
    TOUCH = "touch"
    SCROLL = "scroll"
    TYPE = "type"
    SWITCH = "switch"


def _enum_or_default(enum_cls, value: Any, default):
    """Parse an enum from its value, falling back instead of raising."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class TimeIntelligence:
    """Circadian and temporal-pattern view of the current moment."""
    circadian_hour: float  # 0-24, fractional
    time_of_day: TimeOfDay
    day_of_week: str  # "monday" .. "sunday"
    is_optimal_window: bool
    energy_level: EnergyLevel
    historical_performance: float  # 0-1
    next_optimal_window: Optional[float] = None  # unix seconds

    @classmethod
    def fallback(cls, hour: float = 12.0, day_of_week: str = "monday") -> "TimeIntelligence":
        return cls(
            circadian_hour=hour,
            time_of_day=TimeOfDay.MIDDAY,
            day_of_week=day_of_week,
            is_optimal_window=False,
            energy_level=EnergyLevel.MEDIUM,
            historical_performance=0.5,
            next_optimal_window=None,
        )


@dataclass(frozen=True)
class LocationContext:
    environment: EnvironmentType
    noise_level: NoiseLevel
    social_setting: SocialSetting
    stability_score: float  # 0-1
    privacy_level: float  # 0-1
    distraction_risk: DistractionRisk
    coordinates: Optional[Coordinates] = None
    is_known_location: bool = False
    location_confidence: float = 0.3

    @classmethod
    def fallback(cls) -> "LocationContext":
        """Location result used when position sensing is unavailable."""
        return cls(
            environment=EnvironmentType.UNKNOWN,
            noise_level=NoiseLevel.MODERATE,
            social_setting=SocialSetting.ALONE,
            stability_score=0.5,
            privacy_level=0.5,
            distraction_risk=DistractionRisk.MEDIUM,
            coordinates=None,
            is_known_location=False,
            location_confidence=0.3,
        )


@dataclass(frozen=True)
class DigitalBodyLanguage:
    """Behavioral proxies derived from recent interactions."""
    state: InteractionState
    app_switch_frequency: float  # switches per minute
    scroll_velocity: float  # px/s
    typing_speed: float  # chars per minute
    typing_accuracy: float  # 0-1
    interaction_pauses: Tuple[float, ...]  # ms
    attention_span: float  # minutes
    cognitive_load_indicator: float  # 0-1
    stress_indicator: float  # 0-1

    @classmethod
    def fallback(cls) -> "DigitalBodyLanguage":
        return cls(
            state=InteractionState.ENGAGED,
            app_switch_frequency=0.0,
            scroll_velocity=0.0,
            typing_speed=0.0,
            typing_accuracy=1.0,
            interaction_pauses=(),
            attention_span=20.0,
            cognitive_load_indicator=0.5,
            stress_indicator=0.0,
        )


@dataclass(frozen=True)
class DeviceState:
    battery_level: float  # 0-1
    is_charging: bool
    network_quality: NetworkQuality

    @classmethod
    def fallback(cls) -> "DeviceState":
        return cls(battery_level=0.5, is_charging=False, network_quality=NetworkQuality.GOOD)


@dataclass(frozen=True)
class AnticipatedChange:
    """A predicted change in one context factor."""
    factor: str
    predicted_value: Any
    timeframe_minutes: float
    confidence: float


@dataclass(frozen=True)
class ContextSnapshot:
    """
    Immutable point-in-time bundle of environmental and behavioral signals.
    """
    timestamp: float
    session_id: str
    time: TimeIntelligence
    location: LocationContext
    dbl: DigitalBodyLanguage
    device: DeviceState
    overall_optimality: float
    recommended_action: RecommendedAction
    quality_score: float
    anticipated_changes: Tuple[AnticipatedChange, ...] = ()

    @classmethod
    def fallback(cls, timestamp: float, session_id: str = "default") -> "ContextSnapshot":
        """Fully degraded snapshot used when every sensing layer failed."""
        return cls(
            timestamp=timestamp,
            session_id=session_id,
            time=TimeIntelligence.fallback(),
            location=LocationContext.fallback(),
            dbl=DigitalBodyLanguage.fallback(),
            device=DeviceState.fallback(),
            overall_optimality=0.5,
            recommended_action=RecommendedAction.PROCEED,
            quality_score=0.3,
            anticipated_changes=(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContextSnapshot":
        """
        Build a snapshot from a loosely-typed mapping (wire payload or stored
        record). Missing sections fall back to their degraded defaults.
        """
        if not isinstance(data, dict):
            raise TypeError(f"ContextSnapshot.from_dict expected dict, got {type(data).__name__}")

        base = cls.fallback(float(data.get("timestamp", 0.0)), str(data.get("session_id", "default")))

        t = data.get("time") or {}
        time_ctx = TimeIntelligence(
            circadian_hour=float(t.get("circadian_hour", base.time.circadian_hour)),
            time_of_day=_enum_or_default(TimeOfDay, t.get("time_of_day"), base.time.time_of_day),
            day_of_week=str(t.get("day_of_week", base.time.day_of_week)),
            is_optimal_window=bool(t.get("is_optimal_window", False)),
            energy_level=_enum_or_default(EnergyLevel, t.get("energy_level"), base.time.energy_level),
            historical_performance=float(t.get("historical_performance", 0.5)),
            next_optimal_window=t.get("next_optimal_window"),
        )

        loc = data.get("location") or {}
        coords = loc.get("coordinates")
        location = LocationContext(
            environment=_enum_or_default(EnvironmentType, loc.get("environment"), EnvironmentType.UNKNOWN),
            noise_level=_enum_or_default(NoiseLevel, loc.get("noise_level"), NoiseLevel.MODERATE),
            social_setting=_enum_or_default(SocialSetting, loc.get("social_setting"), SocialSetting.ALONE),
            stability_score=float(loc.get("stability_score", 0.5)),
            privacy_level=float(loc.get("privacy_level", 0.5)),
            distraction_risk=_enum_or_default(DistractionRisk, loc.get("distraction_risk"), DistractionRisk.MEDIUM),
            coordinates=Coordinates(float(coords["latitude"]), float(coords["longitude"])) if coords else None,
            is_known_location=bool(loc.get("is_known_location", False)),
            location_confidence=float(loc.get("location_confidence", 0.3)),
        )

        d = data.get("dbl") or {}
        dbl = DigitalBodyLanguage(
            state=_enum_or_default(InteractionState, d.get("state"), InteractionState.ENGAGED),
            app_switch_frequency=float(d.get("app_switch_frequency", 0.0)),
            scroll_velocity=float(d.get("scroll_velocity", 0.0)),
            typing_speed=float(d.get("typing_speed", 0.0)),
            typing_accuracy=float(d.get("typing_accuracy", 1.0)),
            interaction_pauses=tuple(float(p) for p in d.get("interaction_pauses", ())),
            attention_span=float(d.get("attention_span", 20.0)),
            cognitive_load_indicator=float(d.get("cognitive_load_indicator", 0.5)),
            stress_indicator=float(d.get("stress_indicator", 0.0)),
        )

        dev = data.get("device") or {}
        device = DeviceState(
            battery_level=float(dev.get("battery_level", 0.5)),
            is_charging=bool(dev.get("is_charging", False)),
            network_quality=_enum_or_default(NetworkQuality, dev.get("network_quality"), NetworkQuality.GOOD),
        )

        changes = tuple(
            AnticipatedChange(
                factor=str(c.get("factor", "")),
                predicted_value=c.get("predicted_value"),
                timeframe_minutes=float(c.get("timeframe_minutes", 0.0)),
                confidence=float(c.get("confidence", 0.0)),
            )
            for c in data.get("anticipated_changes", ())
        )

        return cls(
            timestamp=base.timestamp,
            session_id=base.session_id,
            time=time_ctx,
            location=location,
            dbl=dbl,
            device=device,
            overall_optimality=float(data.get("overall_optimality", 0.5)),
            recommended_action=_enum_or_default(
                RecommendedAction, data.get("recommended_action"), RecommendedAction.PROCEED
            ),
            quality_score=float(data.get("quality_score", 0.3)),
            anticipated_changes=changes,
        )


@dataclass
class Interaction:
    """One user interaction event fed into digital body language tracking."""
    timestamp: float
    type: InteractionType
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Interaction":
        return cls(
            timestamp=float(data.get("timestamp", 0.0)),
            type=InteractionType(data.get("type", "touch")),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class OptimalTimeEntry:
    """Learned performance for an (hour, weekday) slot."""
    hour: float
    day_of_week: str
    performance: float


@dataclass
class KnownLocation:
    """A learned location and its rolling performance history."""
    name: str
    latitude: float
    longitude: float
    environment: EnvironmentType = EnvironmentType.UNKNOWN
    performance_history: list = field(default_factory=list)


@dataclass
class LearnedPatterns:
    """Long-lived time/location learning, preserved across sessions."""
    optimal_times: list = field(default_factory=list)  # List[OptimalTimeEntry]
    known_locations: list = field(default_factory=list)  # List[KnownLocation]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "optimal_times": [
                {"hour": e.hour, "day_of_week": e.day_of_week, "performance": e.performance}
                for e in self.optimal_times
            ],
            "known_locations": [
                {
                    "name": loc.name,
                    "latitude": loc.latitude,
                    "longitude": loc.longitude,
                    "environment": loc.environment.value,
                    "performance_history": list(loc.performance_history),
                }
                for loc in self.known_locations
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearnedPatterns":
        return cls(
            optimal_times=[
                OptimalTimeEntry(
                    hour=float(e["hour"]),
                    day_of_week=str(e["day_of_week"]),
                    performance=float(e["performance"]),
                )
                for e in data.get("optimal_times", [])
            ],
            known_locations=[
                KnownLocation(
                    name=str(loc.get("name", "")),
                    latitude=float(loc["latitude"]),
                    longitude=float(loc["longitude"]),
                    environment=_enum_or_default(EnvironmentType, loc.get("environment"), EnvironmentType.UNKNOWN),
                    performance_history=[float(p) for p in loc.get("performance_history", [])],
                )
                for loc in data.get("known_locations", [])
            ],
        )

"""
Type definitions for cognitive samples, processed metrics and classified states.
"""
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .context import ContextSnapshot


DEFAULT_SAMPLE_CONFIDENCE = 0.8


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]; NaN collapses to low."""
    if value != value:
        return low
    return max(low, min(high, value))


class CognitiveStateType(Enum):
    """Fixed set of cognitive regimes the classifier can emit."""
    DEEP_FOCUS = "DeepFocus"
    CREATIVE_FLOW = "CreativeFlow"
    FRAGMENTED_ATTENTION = "FragmentedAttention"
    COGNITIVE_OVERLOAD = "CognitiveOverload"


class AdvisoryKind(Enum):
    DECLINING = "declining"
    PEAK = "peak"


def _number(value: Any, default: float) -> float:
    """Numeric field from untrusted input; null or unparseable gives the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def head_stillness_from_position(x: float, y: float, z: float) -> float:
    """Stillness score from a head position relative to the rest pose (0, 0, 1)."""
    distance = math.sqrt(x ** 2 + y ** 2 + (z - 1) ** 2)
    return clamp(1 - distance * 2)


@dataclass
class CognitiveSample:
    """
    One raw observation from the sensor collaborator.
    """
    timestamp: float
    gaze_stability: float  # 0-1
    head_stillness: float  # 0-1
    blink_rate: float  # blinks per minute
    confidence: float = DEFAULT_SAMPLE_CONFIDENCE
    context: Optional[ContextSnapshot] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CognitiveSample":
        """
        Parse a partial sample, defaulting missing fields instead of rejecting.

        ``head_position`` ({x, y, z}) is accepted in place of ``head_stillness``.
        """
        if not isinstance(data, dict):
            raise TypeError(f"CognitiveSample.from_dict expected dict, got {type(data).__name__}")

        head = data.get("head_stillness")
        if head is None and isinstance(data.get("head_position"), dict):
            pos = data["head_position"]
            head = head_stillness_from_position(
                _number(pos.get("x"), 0.0), _number(pos.get("y"), 0.0), _number(pos.get("z"), 1.0)
            )

        context = data.get("context")
        if isinstance(context, dict):
            context = ContextSnapshot.from_dict(context)

        return cls(
            timestamp=_number(data.get("timestamp"), 0.0),
            gaze_stability=clamp(_number(data.get("gaze_stability"), 0.5)),
            head_stillness=clamp(_number(head, 0.5)),
            blink_rate=max(0.0, _number(data.get("blink_rate"), 15.0)),
            confidence=clamp(_number(data.get("confidence"), DEFAULT_SAMPLE_CONFIDENCE)),
            context=context if isinstance(context, ContextSnapshot) else None,
        )


@dataclass(frozen=True)
class ProcessedMetrics:
    """Output of the signal processor for one CognitiveSample."""
    timestamp: float
    raw_attention: float
    filtered_attention: float
    cognitive_load: float
    stress_indicators: Tuple[float, ...]
    quality_score: float

    @property
    def max_stress(self) -> float:
        return max(self.stress_indicators, default=0.0)


@dataclass(frozen=True)
class SessionStats:
    """Rolling aggregates over the bounded metrics history."""
    sample_count: int = 0
    average_attention: float = 0.0
    peak_attention: float = 0.0
    low_attention: float = 0.0
    stability: float = 0.5


@dataclass(frozen=True)
class MetricsUpdate:
    """Payload of ``metrics.updated``."""
    metrics: ProcessedMetrics
    stats: SessionStats


@dataclass(frozen=True)
class AttentionAdvisory:
    """Non-authoritative hint that attention is trending strongly."""
    timestamp: float
    kind: AdvisoryKind
    slope: float
    average: float


@dataclass(frozen=True)
class AttentionForecast:
    predicted_attention: float
    slope: float
    confidence: float
    timeframe_seconds: float = 300.0


@dataclass(frozen=True)
class StatePrediction:
    next_state: CognitiveStateType
    probability: float
    horizon_minutes: float
    triggers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CognitiveState:
    """The authoritative classified state at one tick."""
    state: CognitiveStateType
    attention: float
    cognitive_load: float
    stability: float
    confidence: float
    entered_at: float
    duration: float  # seconds in the current regime
    timestamp: float
    predictions: Tuple[StatePrediction, ...] = ()
    attention_forecast: Optional[AttentionForecast] = None

    @classmethod
    def initial(cls, timestamp: float) -> "CognitiveState":
        return cls(
            state=CognitiveStateType.FRAGMENTED_ATTENTION,
            attention=0.5,
            cognitive_load=0.5,
            stability=0.5,
            confidence=0.5,
            entered_at=timestamp,
            duration=0.0,
            timestamp=timestamp,
        )

    @property
    def duration_minutes(self) -> float:
        return self.duration / 60.0


@dataclass(frozen=True)
class StateTransition:
    """Logged whenever the classified label changes; ordered by ``sequence``."""
    sequence: int
    from_state: CognitiveStateType
    to_state: CognitiveStateType
    timestamp: float
    trigger: str
    confidence: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateTransition":
        return cls(
            sequence=int(data.get("sequence", 0)),
            from_state=CognitiveStateType(data["from_state"]),
            to_state=CognitiveStateType(data["to_state"]),
            timestamp=float(data.get("timestamp", 0.0)),
            trigger=str(data.get("trigger", "metrics-driven")),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class StateFeatures:
    """Feature vector the classifier scores on each tick."""
    attention: float
    cognitive_load: float
    stability: float
    max_stress: float
    quality: float
    time_in_state: float  # seconds
    trend: float


@dataclass(frozen=True)
class AdaptiveThresholds:
    """
    Versioned per-state cutoffs. ``adapt`` returns a new snapshot; instances
    are never mutated, so readers can hold one across ticks safely.
    """
    deep_focus_min: float = 0.75
    deep_focus_optimal: float = 0.85
    creative_flow_min: float = 0.65
    creative_flow_optimal: float = 0.8
    creative_flow_bonus: float = 0.1
    fragmented_max: float = 0.45
    fragmented_recovery: float = 0.3
    overload_max: float = 0.25
    overload_immediate: float = 0.15
    version: int = 0

    def boundaries(self) -> Tuple[float, float, float]:
        return (self.deep_focus_min, self.fragmented_max, self.overload_max)

    def adapt(
        self,
        state: CognitiveStateType,
        attention: float,
        learning_rate: float = 0.05,
    ) -> "AdaptiveThresholds":
        """Nudge the cutoff owned by ``state`` toward ``attention``."""
        name = {
            CognitiveStateType.DEEP_FOCUS: "deep_focus_min",
            CognitiveStateType.FRAGMENTED_ATTENTION: "fragmented_max",
            CognitiveStateType.COGNITIVE_OVERLOAD: "overload_max",
        }.get(state)
        if name is None:
            return self

        current = getattr(self, name)
        updated = current * (1 - learning_rate) + attention * learning_rate
        return replace(self, **{name: clamp(updated), "version": self.version + 1})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdaptiveThresholds":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

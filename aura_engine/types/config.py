"""
Configuration type definitions for all engine components.

Every tunable documented by the engine lives here with its default, so a
YAML file only needs to name what it overrides.
"""
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Optional, List, Dict, Any, Type, TypeVar, get_origin, get_args, Union

import yaml

from .cognitive import AdaptiveThresholds

T = TypeVar("T")

# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------

def _is_optional(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union and type(None) in get_args(tp)


def _strip_optional(tp: Any) -> Any:
    return next(t for t in get_args(tp) if t is not type(None))


def _coerce_value(value: Any, target_type: Any) -> Any:
    """Convert a YAML value into the target field type."""
    if value is None:
        return None

    if _is_optional(target_type):
        return _coerce_value(value, _strip_optional(target_type))

    if isinstance(target_type, type) and issubclass(target_type, Enum):
        return target_type(value)

    if isinstance(target_type, type) and is_dataclass(target_type):
        if not isinstance(value, dict):
            raise ValueError(f"Expected mapping for {target_type.__name__}, got {type(value).__name__}")
        return _dict_to_dataclass(value, target_type)

    origin = get_origin(target_type)

    if origin in (list, List):
        (item_type,) = get_args(target_type)
        return [_coerce_value(v, item_type) for v in value]

    if origin in (dict, Dict):
        key_type, val_type = get_args(target_type)
        return {
            _coerce_value(k, key_type): _coerce_value(v, val_type)
            for k, v in value.items()
        }

    if target_type is float and isinstance(value, int):
        return float(value)

    return value


def _dict_to_dataclass(data: Dict[str, Any], cls: Type[T]) -> T:
    """Create a dataclass instance from a dict, ignoring unknown keys."""
    field_map = {f.name: f for f in fields(cls)}
    kwargs = {}

    for key, value in data.items():
        if key not in field_map:
            continue
        kwargs[key] = _coerce_value(value, field_map[key].type)

    return cls(**kwargs)


def _dataclass_to_dict(obj: Any) -> Any:
    """Convert a dataclass tree to a YAML-safe dict."""
    if is_dataclass(obj):
        return {f.name: _dataclass_to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _dataclass_to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_dataclass_to_dict(v) for v in obj]
    return obj


def _require_positive(section: str, **values: float) -> None:
    for name, value in values.items():
        if value <= 0:
            raise ValueError(f"{section}.{name} must be positive, got {value}")


def _require_unit(section: str, **values: float) -> None:
    for name, value in values.items():
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{section}.{name} must be within [0, 1], got {value}")

# ------------------------------------------------------------------
# Configuration Data Classes
# ------------------------------------------------------------------


class SensorMode(Enum):
    """Which context provider adapters to build."""
    SIMULATED = "simulated"
    SYSTEM = "system"


class StorageBackend(Enum):
    MEMORY = "memory"
    JSONL = "jsonl"


@dataclass
class SignalProcessingConfig:
    """Configuration for the SignalProcessor."""
    buffer_size: int = 50

    # Metrics history backpressure
    history_cap: int = 1000
    history_truncate_to: int = 500

    # Trend advisories
    advisory_window: int = 10
    advisory_min_samples: int = 5
    declining_slope: float = -0.1
    declining_average: float = 0.4
    peak_slope: float = 0.1
    peak_average: float = 0.7

    def __post_init__(self):
        _require_positive(
            "signal_processing",
            buffer_size=self.buffer_size,
            history_cap=self.history_cap,
            history_truncate_to=self.history_truncate_to,
            advisory_window=self.advisory_window,
        )
        if self.history_truncate_to > self.history_cap:
            raise ValueError("signal_processing.history_truncate_to must not exceed history_cap")


@dataclass
class ContextSensorConfig:
    """Configuration for the ContextSensor."""
    session_id: str = "default"

    cache_ttl_seconds: float = 300.0
    monitoring_interval_seconds: float = 120.0
    layer_timeout_seconds: float = 5.0

    # Emission suppression
    emit_min_interval_seconds: float = 30.0
    emit_score_delta: float = 0.05

    # Device
    network_cache_ttl_seconds: float = 30.0

    # Digital body language
    interaction_cap: int = 1000
    dbl_publish_every: int = 10

    # Location
    known_location_radius_m: float = 100.0
    position_history_size: int = 5
    location_performance_cap: int = 20

    # Pattern learning
    optimal_time_learning_rate: float = 0.2
    known_location_min_optimality: float = 0.7

    def __post_init__(self):
        _require_positive(
            "context_sensor",
            cache_ttl_seconds=self.cache_ttl_seconds,
            monitoring_interval_seconds=self.monitoring_interval_seconds,
            layer_timeout_seconds=self.layer_timeout_seconds,
            interaction_cap=self.interaction_cap,
            dbl_publish_every=self.dbl_publish_every,
        )
        _require_unit(
            "context_sensor",
            emit_score_delta=self.emit_score_delta,
            optimal_time_learning_rate=self.optimal_time_learning_rate,
        )


def _default_state_weights() -> Dict[str, List[float]]:
    # [attention, cognitive_load, stability]
    return {
        "DeepFocus": [2.0, -1.5, 1.0],
        "CreativeFlow": [1.2, -0.8, 0.8],
        "FragmentedAttention": [-0.5, 0.3, -1.0],
        "CognitiveOverload": [-1.5, 2.0, -0.5],
    }


@dataclass
class ClassifierConfig:
    """Configuration for the StateClassifier."""
    ema_default_alpha: float = 0.3
    initial_attention: float = 0.6
    learning_rate: float = 0.05

    # Creative flow needs this many of its three indicators
    creative_flow_min_indicators: int = 2

    state_weights: Dict[str, List[float]] = field(default_factory=_default_state_weights)
    thresholds: AdaptiveThresholds = field(default_factory=AdaptiveThresholds)

    # Confidence shaping
    borderline_margin: float = 0.1
    borderline_penalty: float = 0.7
    agreement_window: int = 3

    # Neutral defaults below this many samples
    min_history: int = 5
    trend_window: int = 5

    state_history_cap: int = 100
    transition_history_cap: int = 50

    def __post_init__(self):
        _require_unit(
            "classifier",
            ema_default_alpha=self.ema_default_alpha,
            learning_rate=self.learning_rate,
            initial_attention=self.initial_attention,
        )
        if not 1 <= self.creative_flow_min_indicators <= 3:
            raise ValueError("classifier.creative_flow_min_indicators must be 1, 2 or 3")
        _require_positive(
            "classifier",
            state_history_cap=self.state_history_cap,
            transition_history_cap=self.transition_history_cap,
            agreement_window=self.agreement_window,
        )
        for label, weights in self.state_weights.items():
            if len(weights) != 3:
                raise ValueError(f"classifier.state_weights[{label}] needs 3 weights")


@dataclass
class PredictorConfig:
    """Configuration for the StatePredictor heuristics."""
    focus_fatigue_minutes: float = 25.0
    creative_exhaustion_minutes: float = 45.0
    declining_trend: float = -0.1
    recovery_trend: float = 0.05
    stress_accumulation_count: int = 2


@dataclass
class RetentionConfig:
    """Housekeeping of stored snapshots."""
    retention_days: float = 30.0
    max_snapshots: int = 100
    emergency_window_seconds: float = 3600.0

    def __post_init__(self):
        _require_positive(
            "retention",
            retention_days=self.retention_days,
            max_snapshots=self.max_snapshots,
        )


@dataclass
class StorageConfig:
    backend: StorageBackend = StorageBackend.MEMORY
    directory: str = "data"
    analytics_days: float = 7.0


@dataclass
class SensorConfig:
    """Context provider adapters."""
    mode: SensorMode = SensorMode.SIMULATED

    # Static location for the system adapter (no GPS on desktops)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    environment_hint: Optional[str] = None

    # Simulated sample source (dev mode)
    simulate_samples: bool = False
    simulated_sample_interval_seconds: float = 2.0
    simulated_seed: Optional[int] = None


@dataclass
class ControllerConfig:
    """Configuration for the RuntimeController and its transports."""
    websocket_host: str = "localhost"
    websocket_port: int = 8765

    api_host: str = "localhost"
    api_port: int = 8080

    # Logging
    session_log_level: str = "INFO"
    system_log_level: str = "INFO"
    log_file_path: Optional[str] = None


@dataclass
class EngineConfig:
    """Complete engine configuration."""
    signal_processing: SignalProcessingConfig = field(default_factory=SignalProcessingConfig)
    context_sensor: ContextSensorConfig = field(default_factory=ContextSensorConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    predictor: PredictorConfig = field(default_factory=PredictorConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    sensors: SensorConfig = field(default_factory=SensorConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        return _dict_to_dataclass(data, cls)

    @classmethod
    def from_file(cls, path: str) -> "EngineConfig":
        """Load configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError("Top-level YAML must be a mapping")

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return _dataclass_to_dict(self)

    def to_file(self, path: str) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.to_dict(),
                f,
                sort_keys=False,
                default_flow_style=False,
            )

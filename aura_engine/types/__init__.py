# Type definitions for the Cognitive Aura Engine
from .context import (
    TimeOfDay,
    EnergyLevel,
    EnvironmentType,
    NoiseLevel,
    SocialSetting,
    DistractionRisk,
    InteractionState,
    NetworkQuality,
    RecommendedAction,
    InteractionType,
    Coordinates,
    TimeIntelligence,
    LocationContext,
    DigitalBodyLanguage,
    DeviceState,
    AnticipatedChange,
    ContextSnapshot,
    Interaction,
    OptimalTimeEntry,
    KnownLocation,
    LearnedPatterns,
)
from .cognitive import (
    CognitiveStateType,
    AdvisoryKind,
    CognitiveSample,
    ProcessedMetrics,
    SessionStats,
    MetricsUpdate,
    AttentionAdvisory,
    AttentionForecast,
    StatePrediction,
    CognitiveState,
    StateTransition,
    StateFeatures,
    AdaptiveThresholds,
)
from .config import (
    SensorMode,
    StorageBackend,
    SignalProcessingConfig,
    ContextSensorConfig,
    ClassifierConfig,
    PredictorConfig,
    RetentionConfig,
    StorageConfig,
    SensorConfig,
    ControllerConfig,
    EngineConfig,
)
from .domain_events import DomainEvent, DomainEventType
from .messages import (
    MessageType,
    SystemStatus,
    WebSocketMessage,
    SystemStatusMessage,
)

__all__ = [
    # Context types
    "TimeOfDay",
    "EnergyLevel",
    "EnvironmentType",
    "NoiseLevel",
    "SocialSetting",
    "DistractionRisk",
    "InteractionState",
    "NetworkQuality",
    "RecommendedAction",
    "InteractionType",
    "Coordinates",
    "TimeIntelligence",
    "LocationContext",
    "DigitalBodyLanguage",
    "DeviceState",
    "AnticipatedChange",
    "ContextSnapshot",
    "Interaction",
    "OptimalTimeEntry",
    "KnownLocation",
    "LearnedPatterns",
    # Cognitive types
    "CognitiveStateType",
    "AdvisoryKind",
    "CognitiveSample",
    "ProcessedMetrics",
    "SessionStats",
    "MetricsUpdate",
    "AttentionAdvisory",
    "AttentionForecast",
    "StatePrediction",
    "CognitiveState",
    "StateTransition",
    "StateFeatures",
    "AdaptiveThresholds",
    # Config types
    "SensorMode",
    "StorageBackend",
    "SignalProcessingConfig",
    "ContextSensorConfig",
    "ClassifierConfig",
    "PredictorConfig",
    "RetentionConfig",
    "StorageConfig",
    "SensorConfig",
    "ControllerConfig",
    "EngineConfig",
    # Events and messages
    "DomainEvent",
    "DomainEventType",
    "MessageType",
    "SystemStatus",
    "WebSocketMessage",
    "SystemStatusMessage",
]

"""
Domain-level event types carried by the engine's event bus.

Events are transport-agnostic: the bus delivers them to in-process
subscribers, and transport adapters (WebSocket) may forward them.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .cognitive import (
    AttentionAdvisory,
    CognitiveSample,
    CognitiveState,
    MetricsUpdate,
    StateTransition,
)
from .context import ContextSnapshot, DigitalBodyLanguage


class DomainEventType(Enum):
    """Bus topics. Each topic carries exactly one payload type."""

    # Sensor input
    SAMPLE_RAW = "cognitive.sample.raw"

    # Context feed
    CONTEXT_UPDATED = "context.updated"
    DBL_UPDATED = "dbl.updated"

    # Signal processing
    METRICS_UPDATED = "metrics.updated"
    ATTENTION_ADVISORY = "attention.advisory"

    # Classification
    STATE_CHANGED = "state.changed"
    STATE_TRANSITION = "state.transition"


PAYLOAD_TYPES: Dict[DomainEventType, type] = {
    DomainEventType.SAMPLE_RAW: CognitiveSample,
    DomainEventType.CONTEXT_UPDATED: ContextSnapshot,
    DomainEventType.DBL_UPDATED: DigitalBodyLanguage,
    DomainEventType.METRICS_UPDATED: MetricsUpdate,
    DomainEventType.ATTENTION_ADVISORY: AttentionAdvisory,
    DomainEventType.STATE_CHANGED: CognitiveState,
    DomainEventType.STATE_TRANSITION: StateTransition,
}


@dataclass
class DomainEvent:
    """
    A domain-level event published on the bus.

    Attributes:
        event_type: The topic.
        payload: Topic-specific domain object (see PAYLOAD_TYPES).
        timestamp: Unix timestamp when the event was created.
        metadata: Optional metadata about the event context.
    """
    event_type: DomainEventType
    payload: Any = None
    timestamp: float = field(default_factory=lambda: datetime.now(timezone.utc).timestamp())
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "metadata": self.metadata,
        }

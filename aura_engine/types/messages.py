"""
Type definitions for WebSocket and API messages.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(Enum):
    """Types of WebSocket messages."""
    # From client to engine
    SAMPLE_SUBMIT = "sample_submit"
    INTERACTION_RECORD = "interaction_record"

    # From engine to client
    CONTEXT_UPDATED = "context_updated"
    METRICS_UPDATED = "metrics_updated"
    STATE_CHANGED = "state_changed"
    STATE_TRANSITION = "state_transition"
    ATTENTION_ADVISORY = "attention_advisory"
    STATUS_UPDATE = "status_update"
    ERROR = "error"

    # Bidirectional
    PING = "ping"
    PONG = "pong"


class SystemStatus(Enum):
    """Engine lifecycle states."""
    INITIALIZING = "initializing"
    READY = "ready"
    MONITORING = "monitoring"
    STOPPED = "stopped"


@dataclass
class WebSocketMessage:
    """Base WebSocket message structure."""
    type: MessageType
    timestamp: float
    payload: Dict[str, Any] = field(default_factory=dict)
    message_id: Optional[str] = None
    target_client_id: Optional[str] = None  # For targeted messages

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "message_id": self.message_id,
            "target_client_id": self.target_client_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebSocketMessage":
        """
        Create message from dictionary.

        Raises:
            ValueError: Unknown message type.
        """
        return cls(
            type=MessageType(data["type"]),
            timestamp=float(data.get("timestamp", 0.0)),
            payload=data.get("payload") or {},
            message_id=data.get("message_id"),
            target_client_id=data.get("target_client_id"),
        )


@dataclass
class SystemStatusMessage:
    """Engine status snapshot returned by /status and broadcast to clients."""
    status: SystemStatus
    timestamp: float
    session_id: str = "default"

    current_state: Optional[str] = None
    state_confidence: Optional[float] = None

    # Component statuses
    sensor_mode: str = "simulated"
    storage_backend: str = "memory"
    context_monitoring: bool = False
    simulated_samples: bool = False

    # Statistics
    samples_processed: int = 0
    transitions_recorded: int = 0
    context_snapshots: int = 0
    thresholds_version: int = 0

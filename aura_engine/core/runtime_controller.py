"""
Runtime Controller

Central orchestrator owning one engine instance: the event bus, the four
processing layers, the persistence store and the context provider adapters.

Responsibilities:
- Wiring the layers to the bus when monitoring starts and unwiring them
  when it stops
- Seeding adaptive thresholds and learned patterns from storage at start,
  and flushing them back on stop
- Persisting state transitions as they are published
- Session switching (resets per-session history, keeps long-lived learning)
- Status, statistics and analytics for the transport layer
"""
import time
from datetime import tzinfo
from typing import Any, Callable, Dict, List, Optional, Union

from aura_engine.layers.context_sensor import ContextSensor
from aura_engine.layers.signal_processing import SignalProcessor
from aura_engine.layers.state_classifier import StateClassifier
from aura_engine.layers.state_predictor import StatePredictor
from aura_engine.services.event_bus import EventBus, Subscription
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.services.sensors import ContextProviders, SimulatedSampleSource, create_context_providers
from aura_engine.services.storage import PatternStore, StorageError, create_pattern_store
from aura_engine.types.cognitive import (
    CognitiveSample,
    CognitiveState,
    ProcessedMetrics,
    SessionStats,
    StateTransition,
)
from aura_engine.types.config import EngineConfig
from aura_engine.types.context import ContextSnapshot, Interaction
from aura_engine.types.domain_events import DomainEvent, DomainEventType
from aura_engine.types.messages import SystemStatus, SystemStatusMessage


class RuntimeController:
    """
    Orchestrator for one Cognitive Aura Engine session at a time.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        providers: Optional[ContextProviders] = None,
        store: Optional[PatternStore] = None,
        bus: Optional[EventBus] = None,
        logger: Optional[LoggerService] = None,
        clock: Callable[[], float] = time.time,
        tz: Optional[tzinfo] = None,
    ):
        """
        Initialize the Runtime Controller.

        Args:
            config: Complete engine configuration.
            providers: Context provider adapters; built from config.sensors
                when omitted.
            store: Persistence backend; built from config.storage when omitted.
            bus: Event bus shared by all layers.
            logger: Shared logger service.
            clock: Time source (unix seconds) handed to every layer.
            tz: Timezone for circadian lookups.
        """
        self._config = config or EngineConfig()
        self._logger = logger or get_logger()
        self._clock = clock

        self._bus = bus or EventBus(logger=self._logger)
        self._store = store or create_pattern_store(self._config.storage)
        self._providers = providers or create_context_providers(self._config.sensors, logger=self._logger)

        # Layers share the logger, bus and clock
        self._signal_processing = SignalProcessor(
            self._config.signal_processing,
            bus=self._bus,
            logger=self._logger,
            clock=clock,
        )
        self._predictor = StatePredictor(self._config.predictor)
        self._classifier = StateClassifier(
            self._config.classifier,
            predictor=self._predictor,
            bus=self._bus,
            logger=self._logger,
            clock=clock,
        )
        self._context_sensor = ContextSensor(
            self._providers,
            self._config.context_sensor,
            retention=self._config.retention,
            store=self._store,
            bus=self._bus,
            logger=self._logger,
            clock=clock,
            tz=tz,
        )

        self._sample_source: Optional[SimulatedSampleSource] = None
        if self._config.sensors.simulate_samples:
            self._sample_source = SimulatedSampleSource(
                self._bus,
                interval_seconds=self._config.sensors.simulated_sample_interval_seconds,
                seed=self._config.sensors.simulated_seed,
                logger=self._logger,
                clock=clock,
            )

        self._status: SystemStatus = SystemStatus.READY
        self._subscriptions: List[Subscription] = []

        self._stats: Dict[str, Any] = {
            "samples_processed": 0,
            "transitions_recorded": 0,
            "context_updates": 0,
            "advisories_raised": 0,
            "storage_errors": 0,
            "session_start": None,
            "uptime_seconds": 0.0,
        }

        self._logger.system(
            "runtime_controller_initialized",
            {
                "session_id": self.session_id,
                "providers": self._providers.describe(),
                "store": type(self._store).__name__,
                "simulate_samples": self._sample_source is not None,
            },
            level="DEBUG",
        )

    # --- Properties ---

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def session_id(self) -> str:
        return self._context_sensor.session_id

    @property
    def signal_processing(self) -> SignalProcessor:
        return self._signal_processing

    @property
    def classifier(self) -> StateClassifier:
        return self._classifier

    @property
    def context_sensor(self) -> ContextSensor:
        return self._context_sensor

    # --- Lifecycle ---

    def is_monitoring(self) -> bool:
        return self._status == SystemStatus.MONITORING

    async def start_monitoring(self, interval_seconds: Optional[float] = None) -> None:
        """
        Seed learning from storage, wire the layers and start the context
        loop (and the simulated sample source when enabled).
        """
        if self.is_monitoring():
            self._logger.system("monitoring_already_started", {}, level="WARNING")
            return

        self._seed_from_storage()

        self._signal_processing.start()
        self._subscriptions = [
            *self._signal_processing.subscribe(self._bus),
            *self._classifier.subscribe(self._bus),
            self._bus.subscribe(DomainEventType.METRICS_UPDATED, self._on_metrics_updated),
            self._bus.subscribe(DomainEventType.STATE_TRANSITION, self._on_state_transition),
            self._bus.subscribe(DomainEventType.CONTEXT_UPDATED, self._on_context_updated),
            self._bus.subscribe(DomainEventType.ATTENTION_ADVISORY, self._on_attention_advisory),
        ]
        self._status = SystemStatus.MONITORING
        self._stats["session_start"] = self._clock()

        await self._context_sensor.start_monitoring(interval_seconds)
        if self._sample_source is not None:
            await self._sample_source.start_streaming()

        self._logger.system("monitoring_started", self._status_dict(), level="INFO")

    async def stop_monitoring(self) -> None:
        """
        Cancel timers and subscriptions, then persist learned patterns and
        thresholds. A second call is a no-op.
        """
        if not self.is_monitoring():
            return
        self._status = SystemStatus.STOPPED

        if self._sample_source is not None:
            await self._sample_source.stop_streaming()
        await self._context_sensor.stop_monitoring()

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        self._signal_processing.stop()

        try:
            self._store.save_thresholds(self._classifier.get_thresholds())
        except StorageError as e:
            self._stats["storage_errors"] += 1
            self._logger.system("thresholds_save_failed", {"error": str(e)}, level="ERROR")

        self._update_statistics()
        self._logger.system("monitoring_stopped", {"final_stats": dict(self._stats)}, level="INFO")

    def switch_session(self, session_id: str) -> None:
        """
        Start a new session: sample, metrics and state history are reset;
        adaptive thresholds and learned patterns carry over.
        """
        previous = self.session_id
        self._signal_processing.reset()
        self._classifier.reset_session()
        self._context_sensor.set_session(session_id)
        self._stats["samples_processed"] = 0
        self._stats["session_start"] = self._clock()

        self._logger.session(
            "session_switched",
            {"from": previous, "to": session_id, "thresholds_version": self._classifier.get_thresholds().version},
        )

    # --- Inputs ---

    def submit_sample(self, sample: Union[CognitiveSample, Dict[str, Any]]) -> Optional[ProcessedMetrics]:
        """
        Publish one sample on cognitive.sample.raw and return its metrics.

        Returns:
            The resulting ProcessedMetrics, or None when not monitoring.
        """
        if isinstance(sample, dict):
            sample = CognitiveSample.from_dict(sample)
        if not sample.timestamp:
            sample.timestamp = self._clock()

        if not self.is_monitoring():
            self._logger.system("sample_dropped_not_monitoring", {"timestamp": sample.timestamp}, level="WARNING")
            return None

        self._bus.publish(DomainEvent(
            event_type=DomainEventType.SAMPLE_RAW,
            payload=sample,
            timestamp=sample.timestamp,
        ))
        return self._signal_processing.get_latest_metrics()

    def record_interaction(self, interaction: Union[Interaction, Dict[str, Any]]) -> None:
        if isinstance(interaction, dict):
            interaction = Interaction.from_dict(interaction)
        if not interaction.timestamp:
            interaction.timestamp = self._clock()
        self._context_sensor.record_interaction(interaction)

    # --- Queries ---

    async def get_context(self, force_refresh: bool = False) -> ContextSnapshot:
        return await self._context_sensor.get_current_context(force_refresh=force_refresh)

    def get_state(self) -> CognitiveState:
        return self._classifier.get_current_state()

    def get_transitions(self) -> List[StateTransition]:
        return self._classifier.get_transitions()

    def get_session_stats(self) -> SessionStats:
        return self._signal_processing.get_session_stats()

    def get_status(self) -> SystemStatus:
        return self._status

    def get_system_status(self) -> SystemStatusMessage:
        state = self._classifier.get_current_state()
        return SystemStatusMessage(
            status=self._status,
            timestamp=self._clock(),
            session_id=self.session_id,
            current_state=state.state.value,
            state_confidence=state.confidence,
            sensor_mode=self._config.sensors.mode.value,
            storage_backend=self._config.storage.backend.value,
            context_monitoring=self._context_sensor.is_monitoring(),
            simulated_samples=self._sample_source is not None and self._sample_source.is_streaming(),
            samples_processed=self._stats["samples_processed"],
            transitions_recorded=self._stats["transitions_recorded"],
            context_snapshots=self._stats["context_updates"],
            thresholds_version=self._classifier.get_thresholds().version,
        )

    def get_statistics(self) -> Dict[str, Any]:
        self._update_statistics()
        return {
            **self._stats,
            "bus": self._bus.get_statistics(),
            "logs": self._logger.get_statistics(),
        }

    def get_analytics(self, days: Optional[float] = None) -> Dict[str, Any]:
        """
        Aggregate stored transitions and snapshots over the last ``days``.
        """
        days = days if days is not None else self._config.storage.analytics_days
        since = self._clock() - days * 86400

        transitions: List[StateTransition] = []
        try:
            transitions = self._store.get_transitions(since)
        except StorageError as e:
            self._stats["storage_errors"] += 1
            self._logger.system("analytics_read_failed", {"error": str(e)}, level="ERROR")

        by_state: Dict[str, int] = {}
        for t in transitions:
            by_state[t.to_state.value] = by_state.get(t.to_state.value, 0) + 1

        return {
            "days": days,
            "transitions": {
                "count": len(transitions),
                "by_target_state": by_state,
                "average_confidence": (
                    sum(t.confidence for t in transitions) / len(transitions) if transitions else None
                ),
            },
            "context": self._context_sensor.get_context_analytics(days),
            "thresholds": self._classifier.get_thresholds(),
        }

    # --- Internal Methods ---

    def _seed_from_storage(self) -> None:
        try:
            thresholds = self._store.load_thresholds()
        except StorageError as e:
            self._stats["storage_errors"] += 1
            self._logger.system("thresholds_load_failed", {"error": str(e)}, level="ERROR")
            thresholds = None
        if thresholds is not None:
            self._classifier.set_thresholds(thresholds)
        self._context_sensor.load_patterns()

    def _on_metrics_updated(self, event: DomainEvent) -> None:
        self._stats["samples_processed"] += 1

    def _on_context_updated(self, event: DomainEvent) -> None:
        self._stats["context_updates"] += 1

    def _on_attention_advisory(self, event: DomainEvent) -> None:
        self._stats["advisories_raised"] += 1
        self._logger.session(
            "attention_advisory",
            {"kind": event.payload.kind.value, "average": round(event.payload.average, 3)},
        )

    def _on_state_transition(self, event: DomainEvent) -> None:
        self._stats["transitions_recorded"] += 1
        try:
            self._store.append_transition(event.payload)
        except StorageError as e:
            self._stats["storage_errors"] += 1
            self._logger.system("transition_append_failed", {"error": str(e)}, level="ERROR")

    def _update_statistics(self) -> None:
        if self._stats["session_start"] is not None:
            self._stats["uptime_seconds"] = self._clock() - self._stats["session_start"]

    def _status_dict(self) -> Dict[str, Any]:
        return {
            "status": self._status.value,
            "session_id": self.session_id,
            "context_monitoring": self._context_sensor.is_monitoring(),
            "simulated_samples": self._sample_source is not None,
        }

"""
Combined Server

Runs the WebSocket and REST API servers around one RuntimeController.
Bus events are forwarded to WebSocket clients; inbound messages and REST
calls are routed to the controller.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

from aura_engine.api.rest_api import HttpMethod, RestAPI
from aura_engine.api.serialization import json_safe
from aura_engine.api.websocket_server import WebSocketServer
from aura_engine.core.runtime_controller import RuntimeController
from aura_engine.services.event_bus import Subscription
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.types.config import EngineConfig
from aura_engine.types.domain_events import DomainEvent, DomainEventType
from aura_engine.types.messages import MessageType, WebSocketMessage


EVENT_TO_MESSAGE_TYPE = {
    DomainEventType.CONTEXT_UPDATED: MessageType.CONTEXT_UPDATED,
    DomainEventType.METRICS_UPDATED: MessageType.METRICS_UPDATED,
    DomainEventType.STATE_CHANGED: MessageType.STATE_CHANGED,
    DomainEventType.STATE_TRANSITION: MessageType.STATE_TRANSITION,
    DomainEventType.ATTENTION_ADVISORY: MessageType.ATTENTION_ADVISORY,
}


class Server:
    """
    Main server combining WebSocket and REST API.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        controller: Optional[RuntimeController] = None,
        logger: Optional[LoggerService] = None,
    ):
        """
        Initialize the combined server.

        Args:
            config: Engine configuration.
            controller: Pre-built controller; created from config when omitted.
            logger: Shared logger service.
        """
        self._config = config or EngineConfig()
        self._logger = logger or get_logger()

        self._controller = controller or RuntimeController(self._config, logger=self._logger)
        self._websocket_server = WebSocketServer(
            host=self._config.controller.websocket_host,
            port=self._config.controller.websocket_port,
            logger=self._logger,
        )
        self._rest_api = RestAPI(
            host=self._config.controller.api_host,
            port=self._config.controller.api_port,
            logger=self._logger,
        )

        self._subscriptions: List[Subscription] = []
        self._is_running: bool = False
        self._wired: bool = False

    async def start(self) -> None:
        """Start all server components."""
        self._logger.system(
            "servers_starting",
            {
                "websocket_url": f"ws://{self._config.controller.websocket_host}:{self._config.controller.websocket_port}",
                "api_url": f"http://{self._config.controller.api_host}:{self._config.controller.api_port}",
            },
        )

        self.wire_components()

        await self._websocket_server.start()
        await self._rest_api.start()
        await self._controller.start_monitoring()

        self._is_running = True
        self._logger.system("servers_started", {})

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._is_running:
            return
        self._logger.system("servers_stopping", {})
        self._is_running = False

        await self._controller.stop_monitoring()
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        await self._websocket_server.stop()
        await self._rest_api.stop()

        self._logger.system("servers_stopped", {})

    def is_running(self) -> bool:
        return self._is_running

    def get_controller(self) -> RuntimeController:
        return self._controller

    def get_websocket_server(self) -> WebSocketServer:
        return self._websocket_server

    def get_rest_api(self) -> RestAPI:
        return self._rest_api

    def wire_components(self) -> None:
        """Bind bus topics, WebSocket handlers and REST routes. Runs once."""
        if self._wired:
            return
        self._wired = True

        # Bus -> WebSocket (outbound)
        self._subscriptions = [
            self._controller.bus.subscribe(event_type, self._handle_domain_event)
            for event_type in EVENT_TO_MESSAGE_TYPE
        ]

        # WebSocket -> Controller (inbound)
        self._setup_websocket_handlers()

        # REST routes -> Controller (inbound)
        self._setup_api_routes()

    # --- Internal Methods ---

    def _handle_domain_event(self, event: DomainEvent) -> None:
        message_type = EVENT_TO_MESSAGE_TYPE.get(event.event_type)
        if message_type is None or self._websocket_server.get_connected_clients() == 0:
            return

        msg = WebSocketMessage(
            type=message_type,
            timestamp=event.timestamp,
            payload=json_safe(event.payload),
            target_client_id=(event.metadata or {}).get("recipient_id"),
        )

        def _handle_task_result(task: asyncio.Task) -> None:
            if task.cancelled():
                self._logger.system(
                    "background_task_cancelled",
                    {"source": "handle_domain_event"},
                    level="DEBUG",
                )
                return
            exc = task.exception()
            if exc is not None:
                self._logger.system(
                    "background_task_error",
                    {"source": "handle_domain_event", "error": str(exc)},
                    level="ERROR",
                )

        if msg.target_client_id:
            task = asyncio.create_task(self._websocket_server.send_to_client(msg.target_client_id, msg))
        else:
            task = asyncio.create_task(self._websocket_server.broadcast(msg))
        task.add_done_callback(_handle_task_result)

    def _setup_api_routes(self) -> None:
        controller = self._controller

        self._rest_api.register_route("/status", HttpMethod.GET, controller.get_system_status)
        self._rest_api.register_route("/statistics", HttpMethod.GET, controller.get_statistics)
        self._rest_api.register_route("/state", HttpMethod.GET, controller.get_state)
        self._rest_api.register_route("/transitions", HttpMethod.GET, controller.get_transitions)
        self._rest_api.register_route("/session/stats", HttpMethod.GET, controller.get_session_stats)

        async def get_context(request: Dict[str, Any]) -> Any:
            force = str(request["query"].get("force", "false")).lower() in ("1", "true", "yes")
            return await controller.get_context(force_refresh=force)

        def get_analytics(request: Dict[str, Any]) -> Any:
            days = request["query"].get("days")
            return controller.get_analytics(float(days) if days is not None else None)

        def switch_session(request: Dict[str, Any]) -> Any:
            body = request.get("json") or {}
            session_id = body.get("session_id")
            if not session_id:
                raise ValueError("session_id is required")
            controller.switch_session(str(session_id))
            return controller.get_system_status()

        def submit_samples(request: Dict[str, Any]) -> Any:
            body = request.get("json")
            if isinstance(body, dict) and "samples" in body:
                samples = body["samples"]
            elif isinstance(body, list):
                samples = body
            elif isinstance(body, dict):
                samples = [body]
            else:
                raise ValueError("Expected a sample object or a list of samples")
            results = [controller.submit_sample(s) for s in samples]
            return {
                "accepted": sum(1 for r in results if r is not None),
                "metrics": [r for r in results if r is not None],
                "state": controller.get_state(),
            }

        def record_interactions(request: Dict[str, Any]) -> Any:
            body = request.get("json")
            items = body if isinstance(body, list) else [body]
            for item in items:
                if not isinstance(item, dict):
                    raise ValueError("Expected interaction objects")
                controller.record_interaction(item)
            return {"recorded": len(items)}

        self._rest_api.register_route("/context", HttpMethod.GET, get_context)
        self._rest_api.register_route("/analytics", HttpMethod.GET, get_analytics)
        self._rest_api.register_route("/session/switch", HttpMethod.POST, switch_session)
        self._rest_api.register_route("/samples", HttpMethod.POST, submit_samples)
        self._rest_api.register_route("/interactions", HttpMethod.POST, record_interactions)

    def _setup_websocket_handlers(self) -> None:

        async def on_sample_submit(message: WebSocketMessage, client_id: str) -> None:
            self._controller.submit_sample(message.payload)

        async def on_interaction_record(message: WebSocketMessage, client_id: str) -> None:
            self._controller.record_interaction(message.payload)

        async def on_ping(message: WebSocketMessage, client_id: str) -> None:
            pong_msg = WebSocketMessage(
                type=MessageType.PONG,
                timestamp=time.time(),
                payload={},
                message_id=message.message_id,  # Echo the incoming message_id
            )
            await self._websocket_server.send_to_client(client_id, pong_msg)

        self._websocket_server.register_handler(MessageType.SAMPLE_SUBMIT, on_sample_submit)
        self._websocket_server.register_handler(MessageType.INTERACTION_RECORD, on_interaction_record)
        self._websocket_server.register_handler(MessageType.PING, on_ping)


def create_server(config_path: Optional[str] = None, logger: Optional[LoggerService] = None) -> Server:
    """
    Factory function to create a server instance.

    Args:
        config_path: Optional path to a YAML configuration file.
        logger: Shared logger service.
    """
    config = EngineConfig.from_file(config_path) if config_path else EngineConfig()
    return Server(config, logger=logger)

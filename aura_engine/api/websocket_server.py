"""
WebSocket Server

Real-time bidirectional channel to dashboard and sensor clients. Engine
events (context, metrics, state) are broadcast as typed messages; clients
may push samples and interactions back.
"""
import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import websockets

from aura_engine.api.serialization import json_safe
from aura_engine.services.logger_service import LoggerService, get_logger
from aura_engine.types.messages import MessageType, WebSocketMessage


# Type alias for message handlers
MessageHandler = Callable[[WebSocketMessage, str], Awaitable[None]]


class WebSocketServer:
    """
    WebSocket server broadcasting engine events.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8765,
        logger: Optional[LoggerService] = None,
    ):
        """
        Initialize the WebSocket server.

        Args:
            host: Host to bind to.
            port: Port to listen on.
            logger: Shared logger service.
        """
        self._host = host
        self._port = port
        self._server: Optional[Any] = None
        self._clients: Set[Any] = set()
        self._client_info: Dict[str, Dict[str, Any]] = {}
        self._message_handlers: Dict[MessageType, MessageHandler] = {}
        self._is_running: bool = False
        self._logger = logger or get_logger()

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await websockets.serve(
            self._handle_connection,
            self._host,
            self._port,
        )
        self._is_running = True

    async def stop(self) -> None:
        """Stop the WebSocket server and disconnect all clients."""
        self._is_running = False

        for client in list(self._clients):
            try:
                await client.close()
            except Exception as e:
                self._logger.system("websocket_close_error", {"error": str(e)}, level="DEBUG")
        self._clients.clear()

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    def is_running(self) -> bool:
        return self._is_running

    def get_connected_clients(self) -> int:
        return len(self._clients)

    def register_handler(
        self,
        message_type: MessageType,
        handler: MessageHandler,
    ) -> None:
        """
        Register a handler for an inbound message type.

        Args:
            message_type: Type of message to handle.
            handler: Async function receiving (message, client_id).
        """
        self._message_handlers[message_type] = handler

    def unregister_handler(self, message_type: MessageType) -> None:
        self._message_handlers.pop(message_type, None)

    async def send_to_client(
        self,
        client_id: str,
        message: WebSocketMessage,
    ) -> bool:
        """
        Send a message to a specific client.

        Returns:
            True if sent successfully.
        """
        client_info = self._client_info.get(client_id)
        if not client_info:
            return False

        websocket = client_info.get("websocket")
        if not websocket:
            return False

        try:
            await websocket.send(self._serialize_message(message))
            return True
        except Exception as e:
            self._logger.system(
                "websocket_send_to_client_error",
                {"client_id": client_id, "error": str(e)},
                level="ERROR",
            )
            return False

    async def broadcast(self, message: WebSocketMessage) -> int:
        """
        Send a message to every connected client. Clients that fail are
        dropped.

        Returns:
            Number of clients reached.
        """
        sent = 0
        try:
            text = self._serialize_message(message)
        except (TypeError, ValueError) as e:
            self._logger.system(
                "websocket_serialize_error",
                {"message_type": message.type.value, "error": str(e)},
                level="ERROR",
            )
            return 0

        for client in list(self._clients):
            try:
                await client.send(text)
                sent += 1
            except Exception as e:
                self._logger.system(
                    "websocket_broadcast_client_error",
                    {"error": str(e)},
                    level="WARNING",
                )
                self._clients.discard(client)

        return sent

    # --- Internal Methods ---

    async def _handle_connection(self, websocket: Any, path: str = "") -> None:
        client_id = str(uuid.uuid4())
        self._clients.add(websocket)
        self._client_info[client_id] = {
            "websocket": websocket,
            "connected_at": asyncio.get_running_loop().time(),
        }

        self._logger.system(
            "websocket_client_connected",
            {"client_id": client_id, "total_clients": len(self._clients)},
        )

        try:
            async for message in websocket:
                await self._process_message(message, client_id)
        except Exception as e:
            self._logger.system(
                "websocket_client_error",
                {"client_id": client_id, "error": str(e)},
                level="WARNING",
            )
        finally:
            self._handle_disconnection(client_id)

    def _handle_disconnection(self, client_id: str) -> None:
        info = self._client_info.pop(client_id, None)
        if info is not None:
            self._clients.discard(info.get("websocket"))
        self._logger.system(
            "websocket_client_disconnected",
            {"client_id": client_id, "total_clients": len(self._clients)},
        )

    async def _process_message(self, raw_message: str, client_id: str) -> None:
        message = self._parse_message(raw_message)
        if message is None:
            await self.send_to_client(client_id, WebSocketMessage(
                type=MessageType.ERROR,
                timestamp=0.0,
                payload={"error": "Malformed message"},
            ))
            return

        handler = self._message_handlers.get(message.type)
        if handler is None:
            self._logger.system(
                "websocket_unhandled_message",
                {"client_id": client_id, "message_type": message.type.value},
                level="DEBUG",
            )
            return

        try:
            await handler(message, client_id)
        except Exception as e:
            self._logger.system(
                "websocket_handler_error",
                {"message_type": message.type.value, "error": str(e)},
                level="ERROR",
            )

    def _parse_message(self, raw_message: str) -> Optional[WebSocketMessage]:
        """Parse raw JSON into a WebSocketMessage, or None if invalid."""
        try:
            data = json.loads(raw_message)
            if not isinstance(data, dict):
                return None
            return WebSocketMessage.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            return None

    def _serialize_message(self, message: WebSocketMessage) -> str:
        return json.dumps(json_safe(message.to_dict()))

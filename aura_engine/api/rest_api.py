"""
REST API Server

HTTP endpoints for status, state and analytics queries, session control and
batch sample submission.

Design:
- Server.py decides which routes exist by calling `register_route(...)`.
- RestAPI is a thin transport layer that binds registered routes into aiohttp.
- /health is kept as a built-in liveness endpoint.
"""
from __future__ import annotations

import inspect
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from aiohttp import web

from aura_engine.api.serialization import json_safe
from aura_engine.services.logger_service import LoggerService, get_logger


class HttpMethod(Enum):
    """HTTP methods."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


# A handler takes nothing or the request envelope dict, sync or async
RouteHandler = Union[Callable[..., Awaitable[Any]], Callable[..., Any]]


class RestAPI:
    """
    REST API server for status, analytics and control endpoints.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8080,
        logger: Optional[LoggerService] = None,
    ):
        self._host = host
        self._port = port
        self._logger = logger or get_logger()
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._routes: Dict[str, Dict[HttpMethod, RouteHandler]] = {}
        self._is_running: bool = False

    async def start(self) -> None:
        """Start the REST API server."""
        self._app = self.build_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        self._is_running = True
        self._logger.system(
            "rest_api_started",
            {"host": self._host, "port": self._port, "routes": self.list_routes()},
            level="DEBUG",
        )

    async def stop(self) -> None:
        """Stop the REST API server."""
        self._is_running = False
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        self._app = None

    def is_running(self) -> bool:
        return self._is_running

    def register_route(
        self,
        path: str,
        method: HttpMethod,
        handler: RouteHandler,
    ) -> None:
        """
        Register a route handler.

        Args:
            path: URL path (e.g., "/status")
            method: HttpMethod enum (e.g., HttpMethod.GET)
            handler: Callable taking no arguments or the request dict.

        Raises:
            ValueError: If the method/path pair is already registered.
        """
        if not path.startswith("/"):
            path = "/" + path

        methods = self._routes.setdefault(path, {})
        if method in methods:
            raise ValueError(f"Route already registered: {method.value} {path}")
        methods[method] = handler

    def list_routes(self) -> Dict[str, list]:
        return {path: [m.value for m in methods] for path, methods in self._routes.items()}

    def build_app(self) -> web.Application:
        """Create the aiohttp application with built-in and registered routes."""
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        for path, methods in self._routes.items():
            for method, handler in methods.items():
                app.router.add_route(method.value, path, self._make_aiohttp_handler(handler))
        return app

    # --- Internal Methods ---

    def _make_aiohttp_handler(self, handler: RouteHandler):

        takes_request = len(inspect.signature(handler).parameters) > 0

        async def _wrapped(request: web.Request) -> web.Response:
            try:
                req = await self._request_to_dict(request)
                result = handler(req) if takes_request else handler()
                if inspect.isawaitable(result):
                    result = await result

                result = json_safe(result)
                if result is None:
                    result = {"status": "ok"}
                return self._create_response(result, status=200)

            except web.HTTPException:
                raise

            except (ValueError, TypeError, KeyError) as e:
                self._logger.system(
                    "rest_api_bad_request",
                    {"path": request.path, "error": str(e)},
                    level="WARNING",
                )
                return self._create_error_response(f"Bad request: {e}", status=400)

            except Exception as e:
                self._logger.system(
                    "rest_api_handler_error",
                    {"path": request.path, "error": str(e), "error_type": type(e).__name__},
                    level="ERROR",
                )
                return self._create_error_response(f"Internal server error: {e}", status=500)

        return _wrapped

    async def _request_to_dict(self, request: web.Request) -> Dict[str, Any]:
        """
        Convert an aiohttp Request into a plain dict envelope with method,
        path, query params, JSON body (or raw text) and headers.
        """
        body_json: Any = None
        body_text: Optional[str] = None
        if request.can_read_body:
            body_text = await request.text()
            if body_text:
                try:
                    body_json = json.loads(body_text)
                except json.JSONDecodeError:
                    body_json = None
            else:
                body_text = None

        return {
            "method": request.method,
            "path": request.path,
            "query": dict(request.rel_url.query),
            "headers": dict(request.headers),
            "json": body_json,
            "text": body_text,
        }

    def _create_response(self, data: Any, status: int = 200) -> web.Response:
        try:
            json.dumps(data)
        except (TypeError, ValueError):
            data = {"error": "Response not JSON serializable"}
            status = 500
        return web.json_response(data, status=status)

    def _create_error_response(self, message: str, status: int = 400) -> web.Response:
        return self._create_response({"error": message}, status=status)

    # --- Built-in Handlers ---

    async def _health_handler(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

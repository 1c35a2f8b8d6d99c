# API module
# Only the serializer is re-exported here: the logger depends on it, and the
# transports (rest_api, websocket_server, server) depend on the logger.
# Import those from their own modules.
from .serialization import json_safe

__all__ = [
    "json_safe",
]

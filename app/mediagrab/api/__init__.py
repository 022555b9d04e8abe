from .events import register_event_routes
from .http import register_http_routes

__all__ = ["register_event_routes", "register_http_routes"]

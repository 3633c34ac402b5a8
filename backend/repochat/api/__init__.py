"""API package exports."""
from . import routes_admin, routes_chat, routes_ingest, routes_summarize

__all__ = [
    "routes_admin",
    "routes_chat",
    "routes_ingest",
    "routes_summarize",
]

"""FastAPI server for the commerce lifecycle."""

from server.app import create_app
from server.config import Settings

__all__ = ["create_app", "Settings"]

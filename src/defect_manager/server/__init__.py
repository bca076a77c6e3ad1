"""defect-manager HTTP server."""

from defect_manager.server.app import create_app
from defect_manager.server.config import Settings

__all__ = ["create_app", "Settings"]

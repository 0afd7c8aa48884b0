"""
WebSocket server module for DriftPick.

Exposes a tracking session via WebSocket for browser extension integration.
"""

from .websocket_server import DriftPickServer, ServerMessage

__all__ = ["DriftPickServer", "ServerMessage"]

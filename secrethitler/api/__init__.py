"""
API Module - WebSocket protocol and REST surface.

Usage:
    uvicorn secrethitler.api.app:app
"""

from .connections import ConnectionTable
from .service import APIService, ConnectionContext
from .app import create_app

__all__ = [
    "ConnectionTable",
    "APIService",
    "ConnectionContext",
    "create_app",
]

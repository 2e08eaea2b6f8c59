"""
Session Module - Manages ephemeral game sessions.

A session represents one group playing one game:
- Created when a player hosts
- Holds the engine: game state, roster, chat log
- Guarded by its own read/write lock
- Reclaimed when idle with nobody connected

Sessions are EPHEMERAL:
- No persistence to database
- Lost on process restart
"""

from .engine import (
    SessionEngine,
    Participant,
    Delivery,
    Identifiers,
    Alert,
    ChatMessage,
    StateView,
    ChatLogSnapshot,
    CHAT_LOG_LIMIT,
)
from .locks import ReadWriteLock
from .manager import SessionManager, Session

__all__ = [
    "SessionEngine",
    "Participant",
    "Delivery",
    "Identifiers",
    "Alert",
    "ChatMessage",
    "StateView",
    "ChatLogSnapshot",
    "CHAT_LOG_LIMIT",
    "ReadWriteLock",
    "SessionManager",
    "Session",
]

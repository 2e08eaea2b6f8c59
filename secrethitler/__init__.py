"""
Secret Hitler - Multiplayer social deduction game server.

A server-authoritative engine for running sessions of 5-10 players.
The engine provides:
- Hidden role assignment and policy deck management
- The turn-phase state machine (elections, legislation, presidential powers)
- Role-aware projection of shared state into per-player views
- An in-memory session registry served over WebSockets
"""

__version__ = "0.1.0"

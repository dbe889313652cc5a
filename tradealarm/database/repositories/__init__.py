"""Database repositories for data access patterns.

Provides repository pattern for clean separation between
session logic and data access.
"""

from .session_repository import SessionRepository

__all__ = ["SessionRepository"]

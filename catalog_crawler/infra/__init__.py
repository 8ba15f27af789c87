"""Infra layer utilities (SQLite connections, user-agent pool)."""

from .storage import SQLiteManager
from .ua_pool import DEFAULT_USER_AGENT, UserAgentPool

__all__ = ["DEFAULT_USER_AGENT", "SQLiteManager", "UserAgentPool"]

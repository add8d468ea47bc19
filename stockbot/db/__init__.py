from __future__ import annotations

"""
Database layer:
- backend contract
- Mongo connection + repositories
- in-memory backend
- schemas
"""

from stockbot.db import base, memory, mongo, repositories, schemas

__all__ = [
    "base",
    "memory",
    "mongo",
    "repositories",
    "schemas"
]

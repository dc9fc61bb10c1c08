"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so JSON serialisation renders plain strings
and comparisons against raw literals (``status == "running"``) keep working.
"""

from __future__ import annotations

from enum import Enum


class OAuthProvider(str, Enum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"


class RuleType(str, Enum):
    SENDER = "sender"
    DOMAIN = "domain"
    KEYWORD = "keyword"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


__all__ = [
    "OAuthProvider",
    "RuleType",
    "JobStatus",
]

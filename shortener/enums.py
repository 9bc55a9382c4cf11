"""Shared enums for the URL shortener service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "ResolutionSource", "CodeStrategy"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Outcome of a single cache operation, used as a metric label."""

    HIT = "hit"
    MISS = "miss"
    OK = "ok"
    ERROR = "error"


class ResolutionSource(StrEnum):
    """Where a resolved short code was served from."""

    CACHE = "cache"
    DATABASE = "database"


class CodeStrategy(StrEnum):
    """How the first candidate short code is produced on creation.

    Retries after a collision always use random codes.
    """

    RANDOM = "random"
    HASH = "hash"
    SEQUENTIAL = "sequential"

    @classmethod
    def from_str(cls, value: str) -> "CodeStrategy":
        """Safely parse from string, falling back to RANDOM for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return cls.RANDOM

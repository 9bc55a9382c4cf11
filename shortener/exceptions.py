"""Error taxonomy for the URL shortener service.

Every error raised on purpose by the service derives from ``ShortenerError``
and carries the HTTP status the API layer answers with.

::

    ShortenerError
    ├─ InvalidUrlError          400  (also a ValueError)
    ├─ NotFoundError            404
    ├─ ShortCodeCollisionError  recovered by the create retry loop
    ├─ CodeSpaceExhaustedError  500
    └─ StoreUnavailableError    500

Cache failures have no exception type: the cache gateway swallows them.
"""

__all__ = [
    "ShortenerError",
    "InvalidUrlError",
    "NotFoundError",
    "ShortCodeCollisionError",
    "CodeSpaceExhaustedError",
    "StoreUnavailableError",
]


class ShortenerError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidUrlError(ShortenerError, ValueError):
    status_code = 400


class NotFoundError(ShortenerError):
    status_code = 404

    def __init__(self, message: str = "Short URL not found") -> None:
        super().__init__(message)


class ShortCodeCollisionError(ShortenerError):
    """Insert hit the unique constraint on ``short_code``."""

    def __init__(self, short_code: str) -> None:
        super().__init__(f"Short code '{short_code}' collision detected")
        self.short_code = short_code


class CodeSpaceExhaustedError(ShortenerError):
    """The bounded retry policy could not find a free short code."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Failed to generate unique short code after {attempts} attempts")
        self.attempts = attempts


class StoreUnavailableError(ShortenerError):
    pass

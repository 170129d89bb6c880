"""
Exception types shared by the fetch client, cache adapters and snapshot parsing.
"""

from typing import Optional


class LeagueHistoryError(Exception):
    """Base exception for league history errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UpstreamHttpError(LeagueHistoryError):
    """Raised when the Sleeper API answers with a non-2xx status."""

    def __init__(self, status_code: int, url: str = ""):
        self.url = url
        message = f"Sleeper API error: HTTP {status_code}"
        if url:
            message += f" ({url})"
        super().__init__(message, status_code=status_code)

    @property
    def retryable(self) -> bool:
        """5xx and 429 are worth another attempt; other 4xx are not."""
        return self.status_code == 429 or not (400 <= self.status_code < 500)


class TransientNetworkError(LeagueHistoryError):
    """Raised when the connection to the Sleeper API fails or times out."""

    def __init__(self, message: str = "Unable to reach the Sleeper API"):
        super().__init__(message)


class CacheError(LeagueHistoryError):
    """Raised by cache adapters when the backing store fails."""


class DataShapeError(LeagueHistoryError):
    """Raised when a snapshot or response does not have a usable shape."""

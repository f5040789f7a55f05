"""Data models for sessions and user dashboard data."""
import math
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Passive indicator of the last dashboard save."""

    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


def to_timestamp(value: Union[int, float, str, datetime]) -> float:
    """Normalize an expiry value to epoch seconds.

    Accepts epoch seconds, epoch milliseconds (anything above 1e12),
    ISO-8601 strings (``Z`` suffix allowed) and datetimes. Naive datetimes
    are taken as UTC.

    Raises:
        ValueError: If the value cannot be interpreted.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid expiry value: {value!r}")
    if isinstance(value, (int, float)):
        ts = float(value)
        if not math.isfinite(ts):
            raise ValueError(f"Invalid expiry value: {value!r}")
        return ts / 1000.0 if ts > 1e12 else ts
    if isinstance(value, str):
        text = value.strip()
        try:
            return to_timestamp(float(text))
        except ValueError:
            pass
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    raise ValueError(f"Invalid expiry value: {value!r}")


class SessionToken(BaseModel):
    """Bearer token issued by the remote authority."""

    token: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at

    def __repr__(self) -> str:
        # never expose the bearer string
        return f"<SessionToken expires_at={self.expires_at}>"

    __str__ = __repr__


class UserDataSnapshot(BaseModel):
    """User dashboard data: watchlist, portfolio and preferences.

    Lists are ordered most recent first. Extra fields sent by the remote
    are kept and sent back untouched.
    """

    watchlist: list[Any] = Field(default_factory=list)
    portfolio: list[Any] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}

    @classmethod
    def empty(cls) -> "UserDataSnapshot":
        return cls()

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")

    def copy_snapshot(self) -> "UserDataSnapshot":
        return self.model_copy(deep=True)

    @staticmethod
    def _promote(items: list, entry: Any) -> None:
        if entry in items:
            items.remove(entry)
        items.insert(0, entry)

    def watch(self, entry: Any) -> None:
        """Add ``entry`` to the watchlist, or move it to the front."""
        self._promote(self.watchlist, entry)

    def unwatch(self, entry: Any) -> bool:
        if entry in self.watchlist:
            self.watchlist.remove(entry)
            return True
        return False

    def hold(self, entry: Any) -> None:
        """Add ``entry`` to the portfolio, or move it to the front."""
        self._promote(self.portfolio, entry)

    def release(self, entry: Any) -> bool:
        if entry in self.portfolio:
            self.portfolio.remove(entry)
            return True
        return False

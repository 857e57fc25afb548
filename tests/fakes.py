"""In-memory test doubles shared across the suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class InMemoryCache:
    """Dict-backed CachePort (TTL recorded, never enforced)."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.data.pop(key, None) is not None

    async def keys(self, prefix: str) -> list[str]:
        return [k for k in self.data if k.startswith(prefix)]

    async def clear(self) -> None:
        self.data.clear()
        self.ttls.clear()

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> InMemoryCache:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

"""
kv_store.py - Local Key-Value Store with Expiry

Storage infrastructure for the session token and local caches.

Classes:
- KeyValueStore: Protocol defining the storage interface
- TTLStore: In-memory store where every value may carry an expiry time

Expiry rule: a value whose expires_at <= now is absent. It is purged the
first time it is read after expiring.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from .config import ExchangeConfig


# Storage keys
TOKEN_KEY = "life_card_token"
SEARCH_HISTORY_KEY = "life_card_search_history"

_MISSING = object()


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol for local key-value stores.

    Implementations must treat expired values as absent.
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for key, or default."""
        ...

    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        """Store value under key, optionally expiring after ttl."""
        ...

    def remove(self, key: str) -> bool:
        """Delete key. Returns True if a live value was removed."""
        ...

    def clear(self) -> None:
        """Delete every key."""
        ...


@dataclass(frozen=True, slots=True)
class StoredValue:
    value: Any
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True, slots=True)
class SearchHistoryItem:
    keyword: str
    timestamp: datetime


class TTLStore:
    """
    In-memory KeyValueStore with per-key expiry.

    The clock is injectable so expiry can be driven deterministically.

    Example:
        store = TTLStore(clock=lambda: now)
        store.set_token("abc", expires_in=3600)
        store.get_token()   # "abc" until an hour has passed, then None
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        search_history_limit: int = 10,
        default_token_ttl: Optional[timedelta] = None,
    ):
        self._data: Dict[str, StoredValue] = {}
        self._clock = clock or datetime.now
        self.search_history_limit = search_history_limit
        self.default_token_ttl = default_token_ttl

    @classmethod
    def from_config(cls, config: ExchangeConfig, clock: Optional[Callable[[], datetime]] = None) -> TTLStore:
        return cls(
            clock=clock,
            search_history_limit=config.search_history_limit,
            default_token_ttl=config.token_ttl,
        )

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._data.get(key)
        if entry is None:
            return default
        if entry.is_expired(self.now()):
            del self._data[key]
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        if ttl is not None and ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl}")
        expires_at = self.now() + ttl if ttl is not None else None
        self._data[key] = StoredValue(value, expires_at)

    def set_until(self, key: str, value: Any, expires_at: Optional[datetime]) -> None:
        """Store value with an absolute expiry time."""
        self._data[key] = StoredValue(value, expires_at)

    def contains(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def remove(self, key: str) -> bool:
        live = self.contains(key)
        self._data.pop(key, None)
        return live

    def clear(self) -> None:
        self._data.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number dropped."""
        now = self.now()
        expired = [k for k, v in self._data.items() if v.is_expired(now)]
        for key in expired:
            del self._data[key]
        return len(expired)

    # ------------------------------------------------------------------
    # Session token
    # ------------------------------------------------------------------

    def get_token(self) -> Optional[str]:
        return self.get(TOKEN_KEY)

    def set_token(self, token: str, expires_in: Optional[int] = None) -> None:
        """
        Store the session token.

        Args:
            token: Opaque token string.
            expires_in: Lifetime in seconds. None falls back to
                default_token_ttl; 0 keeps the token until it is cleared.
        """
        if not token:
            raise ValueError("token cannot be empty")
        if expires_in is None:
            ttl = self.default_token_ttl
        else:
            ttl = timedelta(seconds=expires_in) if expires_in else None
        self.set(TOKEN_KEY, token, ttl)

    def clear_token(self) -> bool:
        return self.remove(TOKEN_KEY)

    # ------------------------------------------------------------------
    # Search history
    # ------------------------------------------------------------------

    def get_search_history(self) -> List[SearchHistoryItem]:
        return list(self.get(SEARCH_HISTORY_KEY, []))

    def add_search_history(self, keyword: str, max_items: Optional[int] = None) -> bool:
        """
        Record a search keyword, most recent first, without duplicates.

        Returns False for a blank keyword.
        """
        keyword = keyword.strip()
        if not keyword:
            return False
        limit = max_items if max_items is not None else self.search_history_limit
        history = [item for item in self.get_search_history() if item.keyword != keyword]
        history.insert(0, SearchHistoryItem(keyword, self.now()))
        self.set(SEARCH_HISTORY_KEY, history[:limit])
        return True

    def clear_search_history(self) -> bool:
        return self.remove(SEARCH_HISTORY_KEY)

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._data)

    def __repr__(self) -> str:
        return f"TTLStore({len(self._data)} keys)"


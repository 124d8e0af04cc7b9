"""Authenticated sessions: created once per mini-app load, read-only afterwards."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from miniapp_chess.auth.init_data import MaxAge, VerifiedUser, verify_init_data

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 10_000


@dataclass(frozen=True)
class Session:
    user_id: int
    username: Optional[str]
    verified: bool
    issued_at: datetime

    @classmethod
    def from_verified_user(cls, user: VerifiedUser) -> Session:
        return cls(
            user_id=user.id,
            username=user.username,
            verified=True,
            issued_at=user.auth_date,
        )

    @property
    def player_id(self) -> str:
        """How the user shows up as a player of a game"""
        return str(self.user_id)

    def is_expired(self, max_age: Optional[MaxAge], now: Optional[datetime] = None) -> bool:
        if max_age is None:
            return False
        if not isinstance(max_age, timedelta):
            max_age = timedelta(seconds=max_age)
        now = now or datetime.now(timezone.utc)
        return now - self.issued_at > max_age


@dataclass
class _CacheEntry:
    user: VerifiedUser
    stored_at: float


class SessionCache:
    """
    Remembers successful verifications for `ttl` seconds, keyed by a digest of the raw payload.

    Holds at most `max_size` entries: stale entries are dropped on every `put()`, and when the cache is still
    full the oldest entry goes. Nothing runs in the background. Safe to share between request threads.
    """

    def __init__(self, ttl: float, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, now: Optional[float] = None) -> Optional[VerifiedUser]:
        now = time.time() if now is None else now
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry.stored_at > self.ttl:
                self._entries.pop(key, None)
                return None
            return entry.user

    def put(self, key: str, user: VerifiedUser, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        with self._lock:
            self._purge(now)
            # re-inserted keys move to the back of the eviction order
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = _CacheEntry(user, now)

    def purge(self, now: Optional[float] = None) -> None:
        with self._lock:
            self._purge(time.time() if now is None else now)

    def _purge(self, now: float) -> None:
        stale = [key for key, entry in self._entries.items() if now - entry.stored_at > self.ttl]
        for key in stale:
            del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SessionVerifier:
    """Verifies init data against the bot token and opens sessions for it."""

    def __init__(
        self,
        bot_token: str,
        max_age: Optional[MaxAge] = None,
        cache: Optional[SessionCache] = None,
    ) -> None:
        self._bot_token = bot_token
        self.max_age = max_age
        self.cache = cache

    def verify(self, raw_payload: str, now: Optional[float] = None) -> VerifiedUser:
        """
        Same contract as `verify_init_data()`. Only successes get cached: a cached entry is still
        subject to the max-age policy, so an expired payload never comes back from the cache.
        """
        cache_key = self._cache_key(raw_payload)
        if cache_key is not None:
            cached = self.cache.get(cache_key, now=now)
            if cached is not None and not self._is_too_old(cached, now):
                return cached

        user = verify_init_data(raw_payload, self._bot_token, self.max_age, now=now)
        if cache_key is not None:
            self.cache.put(cache_key, user, now=now)
        logger.info("Verified init data for user %s", user.id)
        return user

    def open_session(self, raw_payload: str, now: Optional[float] = None) -> Session:
        return Session.from_verified_user(self.verify(raw_payload, now=now))

    def _cache_key(self, raw_payload: str) -> Optional[str]:
        if self.cache is None:
            return None
        # the whole payload, not just its hash field: a known hash next to other fields must not hit the cache
        return hashlib.sha256(raw_payload.encode()).hexdigest()

    def _is_too_old(self, user: VerifiedUser, now: Optional[float]) -> bool:
        if self.max_age is None:
            return False
        max_age = self.max_age.total_seconds() if isinstance(self.max_age, timedelta) else self.max_age
        current_time = time.time() if now is None else now
        return current_time - user.auth_date.timestamp() > max_age
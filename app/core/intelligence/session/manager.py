"""Per-phone session store for the conversation engine."""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Optional

from redis.asyncio import Redis

from app.config import settings
from app.infra.redis import get_redis, APP_PREFIX
from .models import Session
from .state import ConversationState, InvalidTransitionError, can_transition


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)

logger = logging.getLogger(__name__)

SESSION_PREFIX = f"{APP_PREFIX}session:"


class SessionManager:
    """
    Session store keyed by phone number.

    Key pattern: whatsapp:v1:session:{phone}

    Expiry contract: a session idle for longer than the TTL is gone.
    Redis enforces it with SETEX; the in-memory map enforces it on read
    (sweep-on-read) and through sweep().

    Every read returns a fresh Session, so callers must write changes back
    through set/update_* rather than mutating what they got.
    """

    def __init__(self, ttl: Optional[int] = None, use_redis: Optional[bool] = None):
        """Initialize session manager.

        Args:
            ttl: Inactivity timeout in seconds (defaults to settings)
            use_redis: Force backend choice (defaults to settings.session_backend)
        """
        self._ttl = ttl or settings.session_ttl  # 30 minutes default
        self._use_redis = (
            settings.session_backend == "redis" if use_redis is None else use_redis
        )
        self._in_memory: dict[str, str] = {}

    @property
    def ttl(self) -> int:
        return self._ttl

    def _key(self, phone: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{phone}"

    async def _get_redis(self) -> Optional[Redis]:
        if not self._use_redis:
            return None
        return await get_redis()

    async def _load(self, phone: str) -> Optional[Session]:
        redis = await self._get_redis()

        if redis:
            raw = await redis.get(self._key(phone))
        else:
            raw = self._in_memory.get(phone)

        return Session.from_json(raw) if raw else None

    async def _save(self, session: Session) -> None:
        redis = await self._get_redis()

        if redis:
            await redis.setex(self._key(session.phone), self._ttl, session.to_json())
        else:
            self._in_memory[session.phone] = session.to_json()

    async def get(self, phone: str) -> Optional[Session]:
        """
        Get the session for a phone.

        Args:
            phone: Customer phone number

        Returns:
            Session, or None if absent or expired (expired entries are evicted)
        """
        session = await self._load(phone)

        if session is None:
            return None

        if session.is_expired(self._ttl):
            logger.info(f"Session expired for {phone}")
            await self.delete(phone)
            return None

        return session

    async def set(
        self,
        phone: str,
        state: Optional[ConversationState] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Session:
        """
        Create or update a session.

        Args:
            phone: Customer phone number
            state: New state (unchanged if None)
            data: Keys merged into the data bag

        Returns:
            The stored Session

        Raises:
            InvalidTransitionError: If state is not reachable from the current one
        """
        session = await self.get(phone) or Session(phone=phone)

        if state is not None and state != session.state:
            if not can_transition(session.state, state):
                logger.warning(
                    f"Invalid transition for {phone}: "
                    f"{session.state.value} -> {state.value}"
                )
                raise InvalidTransitionError(session.state, state)
            session.state = state

        if data:
            session.merge_data(data)

        session.touch()
        await self._save(session)
        return session

    async def update_state(self, phone: str, state: ConversationState) -> Session:
        """Change only the state."""
        session = await self.set(phone, state=state)
        logger.debug(f"Session {phone} transitioned to {state.value}")
        return session

    async def update_data(self, phone: str, data: dict[str, Any]) -> Session:
        """Merge keys into the data bag."""
        return await self.set(phone, data=data)

    async def get_or_create(self, phone: str) -> Session:
        """Get existing session or create a fresh one in the initial state."""
        session = await self.get(phone)
        if session is not None:
            return session
        logger.debug(f"Session created for {phone}")
        return await self.set(phone)

    async def reset(self, phone: str) -> Session:
        """
        Replace the session with a fresh initial one.

        Unlike set(), nothing from the previous data bag survives.
        """
        session = Session(phone=phone)
        await self._save(session)
        logger.debug(f"Session reset for {phone}")
        return session

    async def delete(self, phone: str) -> bool:
        """
        Delete a session.

        Returns:
            True if something was deleted
        """
        redis = await self._get_redis()

        if redis:
            return bool(await redis.delete(self._key(phone)))

        return self._in_memory.pop(phone, None) is not None

    async def sweep(self) -> int:
        """
        Evict every expired in-memory session.

        Redis expires keys on its own, so this only touches the local map.

        Returns:
            Number of sessions evicted
        """
        now = _utcnow()
        expired = [
            phone
            for phone, raw in self._in_memory.items()
            if Session.from_json(raw).is_expired(self._ttl, now)
        ]
        for phone in expired:
            del self._in_memory[phone]

        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    async def get_all(self) -> list[Session]:
        """All live sessions (diagnostics)."""
        redis = await self._get_redis()

        if redis:
            sessions = []
            async for key in redis.scan_iter(match=f"{SESSION_PREFIX}*"):
                raw = await redis.get(key)
                if raw:
                    sessions.append(Session.from_json(raw))
            return sessions

        await self.sweep()
        return [Session.from_json(raw) for raw in self._in_memory.values()]

    async def get_stats(self) -> dict:
        """Count of live sessions, overall and per state."""
        sessions = await self.get_all()
        by_state = Counter(session.state.value for session in sessions)
        return {
            "active_sessions": len(sessions),
            "by_state": dict(by_state),
        }


# Singleton
_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get singleton SessionManager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager

"""Tests for session management."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.intelligence.session.manager import SESSION_PREFIX, SessionManager
from app.core.intelligence.session.models import BOOKING, CUSTOMER_ID, Session
from app.core.intelligence.session.state import (
    ConversationState,
    InvalidTransitionError,
    VALID_TRANSITIONS,
    can_transition,
)

PHONE = "+5491155550000"


class TestInMemorySessions:
    """Test the in-memory backend."""

    @pytest.fixture
    def manager(self):
        return SessionManager(ttl=1800, use_redis=False)

    @pytest.mark.asyncio
    async def test_get_missing(self, manager):
        assert await manager.get(PHONE) is None

    @pytest.mark.asyncio
    async def test_get_or_create(self, manager):
        session = await manager.get_or_create(PHONE)

        assert session.phone == PHONE
        assert session.state == ConversationState.INITIAL
        assert session.data == {}
        assert PHONE in manager._in_memory

    @pytest.mark.asyncio
    async def test_set_merges_data(self, manager):
        await manager.set(PHONE, data={CUSTOMER_ID: "c1"})
        await manager.set(PHONE, data={BOOKING: {"time": "10:00"}})

        session = await manager.get(PHONE)
        assert session.data == {CUSTOMER_ID: "c1", BOOKING: {"time": "10:00"}}

    @pytest.mark.asyncio
    async def test_update_state(self, manager):
        await manager.update_state(PHONE, ConversationState.INTENT_DETECTED)

        session = await manager.get(PHONE)
        assert session.state == ConversationState.INTENT_DETECTED

    @pytest.mark.asyncio
    async def test_invalid_transition_rejected(self, manager):
        await manager.update_state(PHONE, ConversationState.INTENT_DETECTED)

        with pytest.raises(InvalidTransitionError):
            await manager.update_state(PHONE, ConversationState.CONFIRMING_CANCELLATION)

        session = await manager.get(PHONE)
        assert session.state == ConversationState.INTENT_DETECTED

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, manager):
        await manager.set(
            PHONE,
            state=ConversationState.COLLECTING_DATA,
            data={CUSTOMER_ID: "c1"},
        )

        await manager.reset(PHONE)

        session = await manager.get(PHONE)
        assert session.state == ConversationState.INITIAL
        assert session.data == {}

    @pytest.mark.asyncio
    async def test_reset_allowed_from_any_state(self, manager):
        await manager.set(PHONE, state=ConversationState.CANCELLING)

        session = await manager.reset(PHONE)

        assert session.state == ConversationState.INITIAL

    @pytest.mark.asyncio
    async def test_expired_session_is_evicted_on_read(self, manager):
        stale = Session(
            phone=PHONE,
            last_activity=datetime.now(timezone.utc) - timedelta(minutes=31),
        )
        manager._in_memory[PHONE] = stale.to_json()

        assert await manager.get(PHONE) is None
        assert PHONE not in manager._in_memory

    @pytest.mark.asyncio
    async def test_sweep(self, manager):
        stale = Session(
            phone="+1",
            last_activity=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        manager._in_memory["+1"] = stale.to_json()
        await manager.get_or_create(PHONE)

        assert await manager.sweep() == 1
        assert list(manager._in_memory) == [PHONE]

    @pytest.mark.asyncio
    async def test_delete(self, manager):
        await manager.get_or_create(PHONE)

        assert await manager.delete(PHONE)
        assert not await manager.delete(PHONE)

    @pytest.mark.asyncio
    async def test_stats(self, manager):
        await manager.get_or_create("+1")
        await manager.update_state("+2", ConversationState.INTENT_DETECTED)

        stats = await manager.get_stats()

        assert stats["active_sessions"] == 2
        assert stats["by_state"] == {"initial": 1, "intent_detected": 1}

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, manager):
        session = await manager.get_or_create(PHONE)
        session.data["customer_id"] = "mutated"

        assert (await manager.get(PHONE)).data == {}


class TestRedisSessions:
    """Test the Redis backend with a mocked client."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.setex = AsyncMock()
        mock.delete = AsyncMock(return_value=1)
        return mock

    @pytest.fixture
    def manager(self):
        return SessionManager(ttl=1800, use_redis=True)

    @pytest.mark.asyncio
    async def test_set_uses_setex(self, manager, mock_redis):
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            await manager.set(PHONE, state=ConversationState.INTENT_DETECTED)

            key, ttl, payload = mock_redis.setex.call_args.args
            assert key == f"{SESSION_PREFIX}{PHONE}"
            assert ttl == 1800
            assert Session.from_json(payload).state == ConversationState.INTENT_DETECTED

    @pytest.mark.asyncio
    async def test_get_existing(self, manager, mock_redis):
        existing = Session(phone=PHONE, state=ConversationState.CANCELLING)
        mock_redis.get = AsyncMock(return_value=existing.to_json())

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            session = await manager.get(PHONE)

            assert session.state == ConversationState.CANCELLING
            mock_redis.get.assert_called_once_with(f"{SESSION_PREFIX}{PHONE}")

    @pytest.mark.asyncio
    async def test_fallback_when_redis_down(self, manager):
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=None,
        ):
            await manager.get_or_create(PHONE)

            assert PHONE in manager._in_memory

    @pytest.mark.asyncio
    async def test_get_all_scans_keys(self, manager, mock_redis):
        session = Session(phone=PHONE)
        mock_redis.get = AsyncMock(return_value=session.to_json())

        async def scan_iter(match=None):
            yield f"{SESSION_PREFIX}{PHONE}"

        mock_redis.scan_iter = MagicMock(side_effect=scan_iter)

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            sessions = await manager.get_all()

            assert [s.phone for s in sessions] == [PHONE]


class TestStateMachine:
    """Test the transition table."""

    def test_same_state_always_allowed(self):
        for state in ConversationState:
            assert can_transition(state, state)

    def test_booking_path(self):
        assert can_transition(ConversationState.INITIAL, ConversationState.INTENT_DETECTED)
        assert can_transition(ConversationState.INTENT_DETECTED, ConversationState.COLLECTING_DATA)
        assert can_transition(ConversationState.COLLECTING_DATA, ConversationState.CONFIRMING)
        assert can_transition(ConversationState.CONFIRMING, ConversationState.COMPLETED)

    def test_slot_reselection_allowed(self):
        assert can_transition(ConversationState.CONFIRMING, ConversationState.COLLECTING_DATA)

    def test_illegal_jumps(self):
        assert not can_transition(ConversationState.COLLECTING_DATA, ConversationState.CANCELLING)
        assert not can_transition(ConversationState.VIEWING, ConversationState.CONFIRMING)

    def test_every_state_can_return_to_initial(self):
        for state in ConversationState:
            assert can_transition(state, ConversationState.INITIAL)

    def test_table_covers_all_states(self):
        assert set(VALID_TRANSITIONS) == set(ConversationState)

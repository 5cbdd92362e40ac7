"""Tests for the transactional reaction toggle."""
import asyncio

import pytest

from archive.auth.schemas import Session
from archive.errors import NotAuthenticated, NotFound, ValidationFailed
from archive.memories.reactions import ReactionService
from archive.memories.schemas import MEMORIES, reactions_collection
from archive.ui.toasts import ToastCenter


@pytest.fixture
def reactions(backends):
    return ReactionService(backends)


async def _memory(backends) -> str:
    return await backends.documents.create(MEMORIES, {
        "title": "States 2009",
        "reactions": {"swim": 0, "heart": 0, "celebrate": 0},
    })


class TestToggle:

    @pytest.mark.asyncio
    async def test_toggle_on(self, reactions, backends, session):
        memory_id = await _memory(backends)
        result = await reactions.toggle(session, memory_id, "swim")
        assert result.active is True
        assert result.reactions == {"swim": 1, "heart": 0, "celebrate": 0}

        join = await backends.documents.get(reactions_collection(memory_id), session.user_id)
        assert join["type"] == "swim"
        assert join["userId"] == session.user_id

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_counter(self, reactions, backends, session):
        memory_id = await _memory(backends)
        await reactions.toggle(session, memory_id, "heart")
        result = await reactions.toggle(session, memory_id, "heart")

        assert result.active is False
        assert result.reactions == {"swim": 0, "heart": 0, "celebrate": 0}
        assert await backends.documents.get(reactions_collection(memory_id), session.user_id) is None

    @pytest.mark.asyncio
    async def test_switch_type(self, reactions, backends, session):
        memory_id = await _memory(backends)
        await reactions.toggle(session, memory_id, "swim")
        result = await reactions.toggle(session, memory_id, "celebrate")

        assert result.active is True
        assert result.reactions == {"swim": 0, "heart": 0, "celebrate": 1}
        join = await backends.documents.get(reactions_collection(memory_id), session.user_id)
        assert join["type"] == "celebrate"

    @pytest.mark.asyncio
    async def test_counters_never_negative(self, reactions, backends, session):
        memory_id = await _memory(backends)
        await reactions.toggle(session, memory_id, "swim")
        await backends.documents.patch(MEMORIES, memory_id, {"reactions.swim": 0})

        result = await reactions.toggle(session, memory_id, "swim")
        assert result.reactions["swim"] == 0

    @pytest.mark.asyncio
    async def test_one_reaction_per_user(self, reactions, backends, session):
        memory_id = await _memory(backends)
        other = Session(token="t2", user_id="user-2", email="sam@example.com")

        await asyncio.gather(
            reactions.toggle(session, memory_id, "swim"),
            reactions.toggle(other, memory_id, "swim"),
        )
        result = await reactions.toggle(session, memory_id, "heart")

        assert result.reactions == {"swim": 1, "heart": 1, "celebrate": 0}

    @pytest.mark.asyncio
    async def test_unknown_type(self, reactions, backends, session):
        memory_id = await _memory(backends)
        with pytest.raises(ValidationFailed):
            await reactions.toggle(session, memory_id, "thumbs")

    @pytest.mark.asyncio
    async def test_missing_memory(self, reactions, session):
        with pytest.raises(NotFound):
            await reactions.toggle(session, "missing", "swim")

    @pytest.mark.asyncio
    async def test_requires_session(self, reactions, backends):
        memory_id = await _memory(backends)
        with pytest.raises(NotAuthenticated):
            await reactions.toggle(None, memory_id, "swim")

    @pytest.mark.asyncio
    async def test_rejections_are_toasted(self, reactions, backends, session):
        toasts = ToastCenter()
        memory_id = await _memory(backends)

        with pytest.raises(ValidationFailed):
            await reactions.toggle(session, memory_id, "thumbs", toasts=toasts)
        with pytest.raises(NotFound):
            await reactions.toggle(session, "missing", "swim", toasts=toasts)

        assert [t.title for t in toasts.active()] == ["Missing Information", "Not Found"]

"""Tests for the DuckDB document store."""
import pytest

from archive.backends import SERVER_TIMESTAMP, Increment
from archive.errors import NotFound


class TestCrud:

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        doc_id = await store.create("memories", {"title": "States 2009", "images": []})
        doc = await store.get("memories", doc_id)
        assert doc["id"] == doc_id
        assert doc["title"] == "States 2009"
        assert doc["images"] == []

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get("memories", "nope") is None

    @pytest.mark.asyncio
    async def test_server_timestamp_resolved(self, store):
        doc_id = await store.create("memories", {"createdAt": SERVER_TIMESTAMP})
        doc = await store.get("memories", doc_id)
        assert isinstance(doc["createdAt"], str)
        assert doc["createdAt"].startswith("20")

    @pytest.mark.asyncio
    async def test_patch_dotted_path_and_increment(self, store):
        doc_id = await store.create("memories", {"reactions": {"swim": 0, "heart": 2}})
        await store.patch("memories", doc_id, {"reactions.swim": Increment(1)})
        doc = await store.get("memories", doc_id)
        assert doc["reactions"] == {"swim": 1, "heart": 2}

    @pytest.mark.asyncio
    async def test_patch_missing_raises_not_found(self, store):
        with pytest.raises(NotFound):
            await store.patch("memories", "ghost", {"title": "x"})

    @pytest.mark.asyncio
    async def test_set_merge_keeps_other_fields(self, store):
        await store.set("decades", "1990s", {"tagline": "The Golden Era"})
        await store.set("decades", "1990s", {"memoryCount": Increment(1)}, merge=True)
        await store.set("decades", "1990s", {"memoryCount": Increment(1)}, merge=True)
        doc = await store.get("decades", "1990s")
        assert doc["tagline"] == "The Golden Era"
        assert doc["memoryCount"] == 2

    @pytest.mark.asyncio
    async def test_set_without_merge_replaces(self, store):
        await store.set("users", "u1", {"email": "a@b.co", "classYear": "2009"})
        await store.set("users", "u1", {"email": "a@b.co"})
        doc = await store.get("users", "u1")
        assert "classYear" not in doc

    @pytest.mark.asyncio
    async def test_delete(self, store):
        doc_id = await store.create("invites", {"email": "a@b.co"})
        assert await store.delete("invites", doc_id) is True
        assert await store.delete("invites", doc_id) is False
        assert await store.get("invites", doc_id) is None

    @pytest.mark.asyncio
    async def test_count_is_per_collection(self, store):
        await store.create("memories", {})
        await store.create("memories", {})
        await store.create("memories/x/comments", {})
        assert await store.count("memories") == 2
        assert await store.count("memories/x/comments") == 1
        assert await store.count("users") == 0


class TestQuery:

    @pytest.mark.asyncio
    async def test_filter_and_order(self, store):
        for i, decade in enumerate(["1990s", "2000s", "1990s", "1990s"]):
            await store.create("memories", {"decade": decade, "n": i})
        page = await store.query("memories", where=[("decade", "1990s")], order_by="n", descending=True)
        assert [d["n"] for d in page.items] == [3, 2, 0]
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_pagination_with_cursor(self, store):
        for i in range(5):
            await store.create("memories", {"n": i})

        first = await store.query("memories", order_by="n", limit=2)
        assert [d["n"] for d in first.items] == [0, 1]
        assert first.has_more is True

        second = await store.query("memories", order_by="n", limit=2, start_after=first.cursor)
        assert [d["n"] for d in second.items] == [2, 3]
        assert second.has_more is True

        third = await store.query("memories", order_by="n", limit=2, start_after=second.cursor)
        assert [d["n"] for d in third.items] == [4]
        assert third.has_more is False

    @pytest.mark.asyncio
    async def test_exactly_full_page_has_no_more(self, store):
        for i in range(3):
            await store.create("memories", {"n": i})
        page = await store.query("memories", order_by="n", limit=3)
        assert len(page.items) == 3
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_missing_sort_values_and_mixed_types(self, store):
        await store.create("users", {"createdAt": "2024-01-02"})
        await store.create("users", {})
        await store.create("users", {"createdAt": "2024-01-01"})
        page = await store.query("users", order_by="createdAt")
        assert [d.get("createdAt") for d in page.items] == ["2024-01-01", "2024-01-02", None]


class TestTransaction:

    @pytest.mark.asyncio
    async def test_commit(self, store):
        async with store.transaction() as txn:
            doc_id = await txn.create("invites", {"email": "a@b.co"})
            await txn.patch("invites", doc_id, {"status": "pending"})
        doc = await store.get("invites", doc_id)
        assert doc["status"] == "pending"

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, store):
        doc_id = await store.create("memories", {"commentCount": 0})
        with pytest.raises(RuntimeError):
            async with store.transaction() as txn:
                await txn.patch("memories", doc_id, {"commentCount": Increment(1)})
                raise RuntimeError("boom")
        doc = await store.get("memories", doc_id)
        assert doc["commentCount"] == 0

"""Tests for the scheduled message store."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from models import STATUS_FAILED, STATUS_PENDING, STATUS_SENT
from scheduled_messages import ScheduledMessageStore

T = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def read_file(store):
    return json.loads(store.path.read_text(encoding="utf-8"))


class TestFileHandling:
    """Tests for data file creation and recovery."""

    @pytest.mark.asyncio
    async def test_file_created_lazily(self, store):
        """Test that the file and its directory are created on first access."""
        assert not store.path.exists()

        assert await store.all() == []

        assert store.path.exists()
        assert read_file(store) == []

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        assert await store.pending(T) == []

    @pytest.mark.asyncio
    async def test_invalid_utf8_reads_as_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b"\xff\xfe\x00garbage\x80\x81")

        assert await store.all() == []
        assert await store.pending(T) == []

        message = await store.schedule("111", "hi", T)
        assert [item["id"] for item in read_file(store)] == [message.id]

    @pytest.mark.asyncio
    async def test_non_array_reads_as_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"id": "abc"}', encoding="utf-8")

        assert await store.all() == []

    @pytest.mark.asyncio
    async def test_schedule_after_corruption_starts_fresh(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("garbage", encoding="utf-8")

        message = await store.schedule("111", "hi", T)

        assert [item["id"] for item in read_file(store)] == [message.id]

    @pytest.mark.asyncio
    async def test_malformed_records_skipped_but_preserved(self, store):
        """Test that bad records are ignored on read and kept on write."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps([{"id": "broken"}]), encoding="utf-8")

        message = await store.schedule("111", "hi", T)
        await store.mark_sent(message.id)

        assert [m.id for m in await store.all()] == [message.id]
        assert read_file(store)[0] == {"id": "broken"}

    @pytest.mark.asyncio
    async def test_no_temp_file_left_behind(self, store):
        await store.schedule("111", "hi", T)

        assert not store.path.with_name(store.path.name + ".tmp").exists()


class TestSchedule:
    """Tests for schedule and pending."""

    @pytest.mark.asyncio
    async def test_schedule_persists_pending_record(self, store):
        message = await store.schedule("111", "hello there", T, creator_id="222")

        assert message.status == STATUS_PENDING
        assert read_file(store) == [{
            "id": message.id,
            "targetUserId": "111",
            "content": "hello there",
            "sendAt": "2026-01-15T09:00:00.000Z",
            "creatorId": "222",
            "status": "pending",
            "retries": 0,
            "lastError": None,
            "createdAt": read_file(store)[0]["createdAt"],
        }]

    @pytest.mark.asyncio
    async def test_schedule_accepts_integer_ids(self, store):
        message = await store.schedule(111, "hi", T, creator_id=222)

        assert message.target_user_id == "111"
        assert message.creator_id == "222"

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        message = await store.schedule("111", "hi", T)

        (loaded,) = await store.all()

        assert loaded.id == message.id
        assert loaded.target_user_id == "111"
        assert loaded.content == "hi"
        assert loaded.send_at == T

    @pytest.mark.asyncio
    async def test_pending_boundary(self, store):
        """Test that a message is due exactly at its send time, not before."""
        message = await store.schedule("111", "hi", T)

        assert await store.pending(T - timedelta(seconds=1)) == []
        assert [m.id for m in await store.pending(T)] == [message.id]
        assert [m.id for m in await store.pending(T + timedelta(seconds=1))] == [message.id]

    @pytest.mark.asyncio
    async def test_pending_keeps_insertion_order(self, store):
        later = await store.schedule("111", "second", T)
        earlier = await store.schedule("111", "first", T - timedelta(hours=1))

        due = await store.pending(T)

        assert [m.id for m in due] == [later.id, earlier.id]

    @pytest.mark.asyncio
    async def test_pending_excludes_sent_and_failed(self, store):
        sent = await store.schedule("111", "a", T)
        failed = await store.schedule("111", "b", T)
        waiting = await store.schedule("111", "c", T)
        await store.mark_sent(sent.id)
        await store.mark_failed(failed.id, "boom")

        assert [m.id for m in await store.pending(T)] == [waiting.id]


class TestMarking:
    """Tests for mark_sent and mark_failed."""

    @pytest.mark.asyncio
    async def test_mark_sent(self, store):
        message = await store.schedule("111", "hi", T)

        assert await store.mark_sent(message.id) is True

        assert read_file(store)[0]["status"] == STATUS_SENT

    @pytest.mark.asyncio
    async def test_mark_failed_records_error(self, store):
        message = await store.schedule("111", "hi", T)

        assert await store.mark_failed(message.id, "e1") is True
        assert await store.mark_failed(message.id, "e2") is True

        record = read_file(store)[0]
        assert record["status"] == STATUS_FAILED
        assert record["retries"] == 2
        assert record["lastError"] == "e2"

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self, store):
        message = await store.schedule("111", "hi", T)
        before = store.path.read_text(encoding="utf-8")

        assert await store.mark_sent("does-not-exist") is False
        assert await store.mark_failed("does-not-exist", "boom") is False

        assert store.path.read_text(encoding="utf-8") == before
        assert (await store.all())[0].id == message.id

    @pytest.mark.asyncio
    async def test_counts(self, store):
        first = await store.schedule("111", "a", T)
        second = await store.schedule("111", "b", T)
        await store.schedule("111", "c", T)
        await store.mark_sent(first.id)
        await store.mark_failed(second.id)

        assert await store.counts() == {"pending": 1, "sent": 1, "failed": 1}
        assert await store.pending_count() == 1

    @pytest.mark.asyncio
    async def test_separate_instances_share_the_file(self, store):
        message = await store.schedule("111", "hi", T)

        other = ScheduledMessageStore(store.path)
        await other.mark_sent(message.id)

        assert await store.pending(T) == []

    @pytest.mark.asyncio
    async def test_concurrent_schedules_are_all_kept(self, store):
        """Test that overlapping writes do not lose updates."""
        messages = await asyncio.gather(*(store.schedule("111", f"message {i}", T) for i in range(30)))

        stored = await store.all()

        assert len(stored) == 30
        assert {m.id for m in stored} == {m.id for m in messages}

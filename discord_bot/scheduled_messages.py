"""Flat-file storage for scheduled direct messages."""

import asyncio
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from models import STATUS_FAILED, STATUS_PENDING, STATUS_SENT, STATUSES, ScheduledMessage, utcnow

logger = logging.getLogger("moodioos.store")


class ScheduledMessageStore:
    """JSON-file backed queue of deferred direct messages.

    Every mutation reads the whole file, changes it in memory and writes it
    back. An asyncio lock serializes those cycles within the process; nothing
    protects the file against a second process writing to it.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run blocking file I/O in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _ensure_file(self) -> None:
        """Create the data file with an empty array if missing."""
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("[]", encoding="utf-8")
            logger.info(f"Created scheduled messages file at {self.path}")

    def _read_items(self) -> list[dict]:
        """Load raw records from file; a corrupt file reads as empty."""
        self._ensure_file()
        raw = self.path.read_bytes()
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Failed to parse {self.path}, treating it as empty: {e}")
            return []
        if not isinstance(data, list):
            logger.error(f"Expected a JSON array in {self.path}, treating it as empty")
            return []
        return data

    def _write_items(self, items: list[dict]) -> None:
        """Replace the file contents atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved {len(items)} scheduled messages")

    @staticmethod
    def _decode(items: list[dict]) -> list[ScheduledMessage]:
        messages = []
        for item in items:
            try:
                messages.append(ScheduledMessage.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed scheduled message {item!r}: {e}")
        return messages

    async def _update(self, message_id: str, mutate: Callable[[dict], None]) -> bool:
        """Apply `mutate` to the record with `message_id` and persist it."""
        async with self._lock:
            items = await self._run(self._read_items)
            for item in items:
                if isinstance(item, dict) and item.get("id") == message_id:
                    mutate(item)
                    await self._run(self._write_items, items)
                    return True
        logger.debug(f"Scheduled message {message_id} not found, nothing to update")
        return False

    async def schedule(
        self,
        target_user_id: str,
        content: str,
        send_at: datetime,
        creator_id: Optional[str] = None,
    ) -> ScheduledMessage:
        """Persist a new pending message and return it."""
        message = ScheduledMessage(
            target_user_id=str(target_user_id),
            content=content,
            send_at=send_at,
            creator_id=str(creator_id) if creator_id is not None else None,
        )
        async with self._lock:
            items = await self._run(self._read_items)
            items.append(message.to_dict())
            await self._run(self._write_items, items)
        logger.info(f"Scheduled message {message.id} for {message.target_user_id}")
        return message

    async def pending(self, as_of: Optional[datetime] = None) -> list[ScheduledMessage]:
        """Get pending messages due at or before `as_of` (default: now), in insertion order."""
        as_of = as_of or utcnow()
        return [m for m in await self.all() if m.is_due(as_of)]

    async def mark_sent(self, message_id: str) -> bool:
        """Mark a message as sent. Unknown ids are ignored."""

        def mutate(item: dict) -> None:
            item["status"] = STATUS_SENT

        return await self._update(message_id, mutate)

    async def mark_failed(self, message_id: str, error_message: Optional[str] = None) -> bool:
        """Mark a message as failed and record the error. Unknown ids are ignored."""

        def mutate(item: dict) -> None:
            item["status"] = STATUS_FAILED
            item["retries"] = int(item.get("retries") or 0) + 1
            item["lastError"] = error_message

        return await self._update(message_id, mutate)

    async def all(self) -> list[ScheduledMessage]:
        """Get every stored message."""
        async with self._lock:
            items = await self._run(self._read_items)
        return self._decode(items)

    async def counts(self) -> dict[str, int]:
        """Count stored messages per status."""
        counts = {status: 0 for status in STATUSES}
        for message in await self.all():
            counts[message.status] += 1
        return counts

    async def pending_count(self) -> int:
        return (await self.counts())[STATUS_PENDING]

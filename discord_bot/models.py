"""Data models for scheduled direct messages."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUSES = (STATUS_PENDING, STATUS_SENT, STATUS_FAILED)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. 2026-01-15T09:00:00.000Z."""
    value = to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


@dataclass
class ScheduledMessage:
    """A deferred direct message and its delivery state."""

    target_user_id: str
    content: str
    send_at: datetime
    creator_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = STATUS_PENDING
    retries: int = 0
    last_error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.send_at = to_utc(self.send_at)
        self.created_at = to_utc(self.created_at)

    def is_due(self, as_of: datetime) -> bool:
        """Check if the message is pending and its send time has passed."""
        return self.status == STATUS_PENDING and self.send_at <= to_utc(as_of)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk field names."""
        return {
            "id": self.id,
            "targetUserId": self.target_user_id,
            "content": self.content,
            "sendAt": format_timestamp(self.send_at),
            "creatorId": self.creator_id,
            "status": self.status,
            "retries": self.retries,
            "lastError": self.last_error,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduledMessage":
        """Build a record from its on-disk representation.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a timestamp or the status is malformed
        """
        status = data.get("status", STATUS_PENDING)
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status}")

        created_at = data.get("createdAt")
        return cls(
            id=str(data["id"]),
            target_user_id=str(data["targetUserId"]),
            content=data["content"],
            send_at=parse_timestamp(data["sendAt"]),
            creator_id=data.get("creatorId"),
            status=status,
            retries=int(data.get("retries") or 0),
            last_error=data.get("lastError"),
            created_at=parse_timestamp(created_at) if created_at else utcnow(),
        )

    def __repr__(self) -> str:
        return f"<ScheduledMessage(id={self.id}, target={self.target_user_id}, status={self.status})>"

import logging
from datetime import UTC, datetime
from typing import List, Optional, Union

from pydantic import ValidationError

from slotpool.modules.models import AuditEvent, AuditEventType
from slotpool.modules.storage import KeySpace

logger = logging.getLogger("slotpool.audit")


class AuditLog:
    DEFAULT_MAX_ENTRIES = 1000

    def __init__(
        self,
        redis_client,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        keys: Optional[KeySpace] = None,
    ):
        """
        Initialize audit log.

        Args:
            redis_client: Async Redis client
            max_entries: Number of most recent events retained
            keys: Redis key layout
        """
        self.redis = redis_client
        self.max_entries = max_entries
        self.keys = keys or KeySpace()

    async def record(
        self,
        event_type: Union[AuditEventType, str],
        requester_id: Optional[str] = None,
        backend_id: Optional[str] = None,
        message: str = "",
        count: Optional[int] = None,
    ) -> None:
        """
        Append an event to the front of the log.

        Logic:
        1. LPUSH the serialized event
        2. LTRIM to the most recent max_entries

        Failures are logged and swallowed.
        """
        try:
            event = AuditEvent(
                type=AuditEventType(event_type).value,
                requester_id=requester_id,
                backend_id=backend_id,
                message=message,
                count=count,
            )
            await self.redis.lpush(self.keys.audit, event.model_dump_json())
            await self.redis.ltrim(self.keys.audit, 0, self.max_entries - 1)
        except Exception as e:
            logger.error(f"Failed to record audit event {event_type}: {e}")

    async def read(self, limit: int = 100) -> List[dict]:
        """
        Get the most recent events, newest first.

        Args:
            limit: Maximum number of events returned

        Returns:
            List of event dicts; undecodable entries become corrupt_data placeholders
        """
        if limit <= 0:
            return []

        raw_events = await self.redis.lrange(self.keys.audit, 0, limit - 1)

        events = []
        for raw in raw_events:
            try:
                events.append(AuditEvent.model_validate_json(raw).to_dict())
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping corrupt audit entry: {e}")
                events.append(
                    AuditEvent(
                        timestamp=datetime.now(UTC),
                        type=AuditEventType.CORRUPT_DATA.value,
                        message="Audit entry could not be decoded",
                    ).to_dict()
                )
        return events

    async def clear(self) -> None:
        """Empty the log."""
        await self.redis.delete(self.keys.audit)
        logger.info("Audit log cleared")

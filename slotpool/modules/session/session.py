import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from pydantic import ValidationError

from slotpool.modules.errors import CorruptStateError
from slotpool.modules.models import SessionRecord
from slotpool.modules.storage import KeySpace

logger = logging.getLogger("slotpool.session")

# Check capacity and bind the requester in one step inside Redis.
# KEYS: active counter, user set, session record
# ARGV: capacity, requester id, record JSON, ttl seconds
CLAIM_SCRIPT = """
local count = tonumber(redis.call('GET', KEYS[1]) or '0') or 0
if count >= tonumber(ARGV[1]) then
    return 0
end
redis.call('SET', KEYS[3], ARGV[3], 'EX', tonumber(ARGV[4]))
redis.call('INCR', KEYS[1])
redis.call('SADD', KEYS[2], ARGV[2])
return 1
"""


@dataclass
class BackendCounters:
    """Live accounting for one backend."""

    active_count: int = 0
    closed_count: int = 0
    active_users: Set[str] = field(default_factory=set)


def _to_int(value, key: str) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Counter {key} holds a non-integer value {value!r}, reading as 0")
        return 0


class SessionStore:
    def __init__(self, redis_client, default_ttl: int = 900, keys: Optional[KeySpace] = None):
        """
        Initialize session store.

        Args:
            redis_client: Async Redis client
            default_ttl: Session TTL in seconds (15 minutes)
            keys: Redis key layout
        """
        self.redis = redis_client
        self.default_ttl = default_ttl
        self.keys = keys or KeySpace()

    # Session records

    async def load(self, requester_id: str) -> Optional[SessionRecord]:
        """
        Get the session bound to a requester.

        Args:
            requester_id: Requester identifier

        Returns:
            SessionRecord, or None if there is no live session

        Raises:
            CorruptStateError: The stored record failed validation
        """
        data = await self.redis.get(self.keys.session(requester_id))
        if data is None:
            return None

        try:
            record = SessionRecord.model_validate_json(data)
        except (ValidationError, ValueError) as e:
            raise CorruptStateError(f"Malformed session record for '{requester_id}': {e}")

        if record.requester_id != requester_id:
            raise CorruptStateError(
                f"Session record for '{requester_id}' belongs to '{record.requester_id}'"
            )

        # Redis TTL normally evicts first; this covers keys that outlived expires_at
        if record.is_expired():
            await self.redis.delete(self.keys.session(requester_id))
            return None

        return record

    def new_record(self, requester_id: str, backend_id: str, ttl: Optional[int] = None) -> SessionRecord:
        now = datetime.now(UTC)
        return SessionRecord(
            requester_id=requester_id,
            backend_id=backend_id,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl or self.default_ttl),
        )

    async def create(self, requester_id: str, backend_id: str, ttl: Optional[int] = None) -> SessionRecord:
        """
        Bind a requester to a backend.

        Logic:
        1. Store the session record with TTL
        2. Increment the backend's active counter
        3. Add the requester to the backend's user set

        The three writes are independent commands.
        """
        ttl = ttl or self.default_ttl
        record = self.new_record(requester_id, backend_id, ttl)

        await self.redis.set(self.keys.session(requester_id), record.model_dump_json(), ex=ttl)
        await self.redis.incr(self.keys.active_count(backend_id))
        await self.redis.sadd(self.keys.active_users(backend_id), requester_id)
        return record

    async def claim(
        self, requester_id: str, backend_id: str, capacity: int, ttl: Optional[int] = None
    ) -> Optional[SessionRecord]:
        """
        Bind a requester to a backend only if it is under capacity.

        Runs CLAIM_SCRIPT so the capacity check and the increment cannot
        interleave with another admission.

        Returns:
            SessionRecord if claimed, None if the backend was full
        """
        ttl = ttl or self.default_ttl
        record = self.new_record(requester_id, backend_id, ttl)

        claimed = await self.redis.eval(
            CLAIM_SCRIPT,
            3,
            self.keys.active_count(backend_id),
            self.keys.active_users(backend_id),
            self.keys.session(requester_id),
            capacity,
            requester_id,
            record.model_dump_json(),
            ttl,
        )
        return record if int(claimed) == 1 else None

    async def delete(self, requester_id: str) -> bool:
        """Delete a session record. Returns True if it existed."""
        return await self.redis.delete(self.keys.session(requester_id)) > 0

    async def load_many(self, requester_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Fetch raw session records for several requesters in one pipeline.

        Returns:
            Mapping of requester id to raw JSON (None when missing)
        """
        requester_ids = list(requester_ids)
        if not requester_ids:
            return {}

        pipe = self.redis.pipeline(transaction=False)
        for requester_id in requester_ids:
            pipe.get(self.keys.session(requester_id))
        results = await pipe.execute()
        return dict(zip(requester_ids, results))

    async def delete_many(self, requester_ids: Iterable[str]) -> int:
        """Delete several session records in one command."""
        keys = [self.keys.session(r) for r in requester_ids]
        if not keys:
            return 0
        return await self.redis.delete(*keys)

    # Per-backend accounting

    async def active_count(self, backend_id: str) -> int:
        key = self.keys.active_count(backend_id)
        return _to_int(await self.redis.get(key), key)

    async def closed_count(self, backend_id: str) -> int:
        key = self.keys.closed_count(backend_id)
        return _to_int(await self.redis.get(key), key)

    async def active_users(self, backend_id: str) -> Set[str]:
        members = await self.redis.smembers(self.keys.active_users(backend_id))
        return {m.decode("utf-8") if isinstance(m, bytes) else m for m in members}

    async def counters(self, backend_id: str) -> BackendCounters:
        """Read both counters and the user set in one pipeline."""
        pipe = self.redis.pipeline(transaction=False)
        pipe.get(self.keys.active_count(backend_id))
        pipe.get(self.keys.closed_count(backend_id))
        pipe.smembers(self.keys.active_users(backend_id))
        active, closed, members = await pipe.execute()

        return BackendCounters(
            active_count=_to_int(active, self.keys.active_count(backend_id)),
            closed_count=_to_int(closed, self.keys.closed_count(backend_id)),
            active_users={m.decode("utf-8") if isinstance(m, bytes) else m for m in members or ()},
        )

    async def decrement_active(self, backend_id: str) -> bool:
        """
        Decrement the active counter, never below zero.

        Returns:
            True if decremented, False if the counter was already zero
        """
        key = self.keys.active_count(backend_id)
        if await self.active_count(backend_id) <= 0:
            logger.warning(f"Active session count for {backend_id} is already 0, not decrementing")
            return False
        await self.redis.decr(key)
        return True

    async def increment_closed(self, backend_id: str, amount: int = 1) -> None:
        await self.redis.incrby(self.keys.closed_count(backend_id), amount)

    async def remove_user(self, backend_id: str, requester_id: str) -> None:
        await self.redis.srem(self.keys.active_users(backend_id), requester_id)

    async def reset_backend(self, backend_id: str, closed_delta: int) -> None:
        """
        Zero the active counter, add to the closed counter and clear the user set.
        """
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self.keys.active_count(backend_id), 0)
        pipe.incrby(self.keys.closed_count(backend_id), closed_delta)
        pipe.delete(self.keys.active_users(backend_id))
        await pipe.execute()

    async def set_active(self, backend_id: str, count: int, stale_users: List[str]) -> None:
        """Overwrite the active counter and drop stale set members."""
        pipe = self.redis.pipeline(transaction=True)
        if stale_users:
            pipe.srem(self.keys.active_users(backend_id), *stale_users)
        pipe.set(self.keys.active_count(backend_id), count)
        await pipe.execute()

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from slotpool.modules.errors import ConflictError, InvalidInputError, NotFoundError
from slotpool.modules.models import AuditEventType, Backend
from slotpool.modules.storage import KeySpace

logger = logging.getLogger("slotpool.registry")

UPDATABLE_FIELDS = frozenset({"credential", "target_id", "capacity", "session_ttl", "enabled"})


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "backend"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class BackendRegistry:
    """
    Stores backend descriptors in a Redis hash keyed by backend id.

    Each backend also owns three auxiliary keys (active counter, closed
    counter, active-user set) that are created and destroyed with it.
    """

    def __init__(self, redis_client, audit=None, keys: Optional[KeySpace] = None):
        """
        Initialize backend registry.

        Args:
            redis_client: Async Redis client
            audit: Optional AuditLog receiving registry events
            keys: Redis key layout
        """
        self.redis = redis_client
        self.audit = audit
        self.keys = keys or KeySpace()

    async def add(
        self,
        backend_id: Optional[str],
        credential: Optional[str],
        target_id: Optional[str],
        capacity: Any,
        session_ttl: Optional[int] = None,
    ) -> Backend:
        """
        Register a new backend.

        Args:
            backend_id: Unique backend identifier
            credential: Credential passed through to callers
            target_id: Target id passed through to callers
            capacity: Maximum concurrent sessions (> 0)
            session_ttl: Optional per-backend session TTL in seconds

        Returns:
            The stored Backend

        Raises:
            InvalidInputError: Missing/empty fields or capacity <= 0
            ConflictError: A backend with this id already exists

        Logic:
        1. Validate the descriptor before touching Redis
        2. HSETNX the descriptor (uniqueness is decided by Redis)
        3. Zero both counters and clear the user set in one MULTI
        """
        try:
            backend = Backend(
                id=backend_id,
                credential=credential,
                target_id=target_id,
                capacity=capacity,
                session_ttl=session_ttl,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid backend: {_describe_validation_error(e)}")

        created = await self.redis.hsetnx(self.keys.registry, backend.id, backend.to_stored())
        if not created:
            raise ConflictError(f"Backend '{backend.id}' already exists")

        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self.keys.active_count(backend.id), 0)
        pipe.set(self.keys.closed_count(backend.id), 0)
        pipe.delete(self.keys.active_users(backend.id))
        await pipe.execute()

        logger.info(
            f"Backend added: {backend.id} (target {backend.target_id}, capacity {backend.capacity})"
        )
        await self._record(AuditEventType.BACKEND_ADDED, backend.id, f"capacity {backend.capacity}")
        return backend

    async def update(self, backend_id: str, **fields: Any) -> Backend:
        """
        Merge the given fields over an existing backend.

        Args:
            backend_id: Backend identifier
            **fields: Any of credential, target_id, capacity, session_ttl, enabled

        Returns:
            The updated Backend

        Raises:
            NotFoundError: Backend is not registered
            InvalidInputError: Unknown field, or the merged record is invalid
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        existing = await self._require(backend_id)
        merged = existing.model_dump()
        merged.update(fields)

        try:
            backend = Backend.model_validate(merged)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid backend: {_describe_validation_error(e)}")

        await self.redis.hset(self.keys.registry, backend.id, backend.to_stored())
        logger.info(f"Backend updated: {backend.id} ({', '.join(sorted(fields)) or 'no fields'})")
        await self._record(AuditEventType.BACKEND_UPDATED, backend.id, ", ".join(sorted(fields)))
        return backend

    async def set_enabled(self, backend_id: str, enabled: bool) -> Backend:
        """
        Enable or disable a backend.

        Counters and bound sessions are left untouched; a disabled backend
        only stops receiving new sessions.

        Raises:
            NotFoundError: Backend is not registered
        """
        existing = await self._require(backend_id)
        backend = existing.model_copy(update={"enabled": bool(enabled)})
        await self.redis.hset(self.keys.registry, backend.id, backend.to_stored())

        logger.info(f"Backend {backend.id} {'enabled' if backend.enabled else 'disabled'}")
        await self._record(
            AuditEventType.BACKEND_ENABLED if backend.enabled else AuditEventType.BACKEND_DISABLED,
            backend.id,
        )
        return backend

    async def remove(self, backend_id: str) -> None:
        """
        Delete a backend and its counters and user set.

        Session records bound to the backend are not touched and become
        orphaned.

        Raises:
            NotFoundError: Backend is not registered
        """
        if not await self.redis.hexists(self.keys.registry, backend_id):
            raise NotFoundError(f"Backend '{backend_id}' not found")

        pipe = self.redis.pipeline(transaction=True)
        pipe.hdel(self.keys.registry, backend_id)
        pipe.delete(
            self.keys.active_count(backend_id),
            self.keys.closed_count(backend_id),
            self.keys.active_users(backend_id),
        )
        await pipe.execute()

        logger.info(f"Backend removed: {backend_id}")
        await self._record(AuditEventType.BACKEND_REMOVED, backend_id)

    async def get(self, backend_id: str) -> Optional[Backend]:
        """
        Get a backend descriptor.

        Returns:
            Backend, or None if absent or malformed
        """
        raw = await self.redis.hget(self.keys.registry, backend_id)
        if raw is None:
            return None
        return self._decode(backend_id, raw)

    async def exists(self, backend_id: str) -> bool:
        return bool(await self.redis.hexists(self.keys.registry, backend_id))

    async def list(self) -> List[Backend]:
        """
        Get all valid backends in registry iteration order.

        Malformed entries are skipped.
        """
        entries: Dict[str, str] = await self.redis.hgetall(self.keys.registry)

        backends = []
        for backend_id, raw in entries.items():
            if isinstance(backend_id, bytes):
                backend_id = backend_id.decode("utf-8")
            backend = self._decode(backend_id, raw)
            if backend is not None:
                backends.append(backend)
        return backends

    def _decode(self, backend_id: str, raw: Any) -> Optional[Backend]:
        try:
            return Backend.from_stored(backend_id, raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Ignoring malformed descriptor for backend {backend_id}: {e}")
            return None

    async def _require(self, backend_id: str) -> Backend:
        backend = await self.get(backend_id)
        if backend is None:
            raise NotFoundError(f"Backend '{backend_id}' not found")
        return backend

    async def _record(self, event_type: AuditEventType, backend_id: str, message: str = "") -> None:
        if self.audit is not None:
            await self.audit.record(event_type, backend_id=backend_id, message=message)

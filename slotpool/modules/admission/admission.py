import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from slotpool.modules.errors import CapacityExhaustedError, CorruptStateError, InvalidInputError
from slotpool.modules.models import AuditEventType, Backend, SessionRecord

logger = logging.getLogger("slotpool.admission")

# Suggested back-off for callers rejected with CapacityExhaustedError
RETRY_AFTER_SECONDS = 30


@dataclass
class Assignment:
    """Backend handed to a requester."""

    backend_id: str
    credential: str
    target_id: str
    expires_at: datetime
    reused: bool = False

    @classmethod
    def from_session(cls, backend: Backend, record: SessionRecord, reused: bool) -> "Assignment":
        return cls(
            backend_id=backend.id,
            credential=backend.credential,
            target_id=backend.target_id,
            expires_at=record.expires_at,
            reused=reused,
        )


class AdmissionEngine:
    def __init__(self, registry, sessions, audit=None, strict_capacity: bool = False):
        """
        Initialize admission engine.

        Args:
            registry: BackendRegistry
            sessions: SessionStore
            audit: Optional AuditLog
            strict_capacity: Claim slots with an atomic Redis script instead of
                read-compare-increment
        """
        self.registry = registry
        self.sessions = sessions
        self.audit = audit
        self.strict_capacity = strict_capacity

    async def assign(self, requester_id: Optional[str]) -> Assignment:
        """
        Find or create a session for a requester.

        Args:
            requester_id: Requester identifier

        Returns:
            Assignment with the bound backend's credential and target id

        Raises:
            InvalidInputError: requester_id is missing or blank
            CapacityExhaustedError: No enabled backend has a free slot

        Logic:
        1. Return the existing session's backend unchanged (no counter changes)
        2. Discard malformed or orphaned session records
        3. Scan backends in registry order, skipping disabled and full ones
        4. Create the session on the first eligible backend
        """
        if not requester_id or not requester_id.strip():
            raise InvalidInputError("requester_id is required")

        existing = await self._existing_assignment(requester_id)
        if existing is not None:
            return existing

        for backend in await self.registry.list():
            if not backend.enabled:
                continue

            ttl = backend.session_ttl or self.sessions.default_ttl

            if self.strict_capacity:
                record = await self.sessions.claim(requester_id, backend.id, backend.capacity, ttl)
                if record is None:
                    continue
            else:
                # Read, compare and increment are separate round trips.
                # Concurrent admissions may overshoot capacity.
                count = await self.sessions.active_count(backend.id)
                if count >= backend.capacity:
                    continue
                logger.debug(f"Backend {backend.id} has {count}/{backend.capacity} sessions")
                record = await self.sessions.create(requester_id, backend.id, ttl)

            logger.info(f"[{backend.id}] Assigned session for {requester_id}")
            await self._record(
                AuditEventType.SESSION_STARTED, requester_id, backend.id, "Session assigned"
            )
            return Assignment.from_session(backend, record, reused=False)

        logger.warning(f"All backends at max capacity, rejecting {requester_id}")
        raise CapacityExhaustedError(
            "All backends are at max capacity. Try again later.",
            retry_after=RETRY_AFTER_SECONDS,
        )

    async def lookup(self, requester_id: str) -> Optional[SessionRecord]:
        """
        Get the current session for a requester without admitting.

        Malformed records read as None.
        """
        try:
            return await self.sessions.load(requester_id)
        except CorruptStateError as e:
            logger.warning(str(e))
            return None

    async def _existing_assignment(self, requester_id: str) -> Optional[Assignment]:
        try:
            record = await self.sessions.load(requester_id)
        except CorruptStateError as e:
            logger.warning(f"{e}; discarding")
            await self.sessions.delete(requester_id)
            await self._record(
                AuditEventType.SESSION_DISCARDED, requester_id, None, "Malformed session record"
            )
            return None

        if record is None:
            return None

        backend = await self.registry.get(record.backend_id)
        if backend is None:
            await self.sessions.delete(requester_id)
            if await self.registry.exists(record.backend_id):
                # Descriptor is malformed but its counters are live; release the slot
                await self.sessions.decrement_active(record.backend_id)
                await self.sessions.remove_user(record.backend_id, requester_id)
                reason = "Bound backend descriptor is malformed"
            else:
                reason = "Bound backend no longer registered"
            logger.warning(f"Session for {requester_id} on {record.backend_id} discarded: {reason}")
            await self._record(
                AuditEventType.SESSION_DISCARDED, requester_id, record.backend_id, reason
            )
            return None

        logger.debug(f"Reusing session for {requester_id} on {backend.id}")
        return Assignment.from_session(backend, record, reused=True)

    async def _record(self, event_type, requester_id, backend_id, message) -> None:
        if self.audit is not None:
            await self.audit.record(event_type, requester_id, backend_id, message)

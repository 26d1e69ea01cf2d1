import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from slotpool.modules.errors import CorruptStateError, InvalidInputError, NotFoundError
from slotpool.modules.models import AuditEventType, SessionRecord

logger = logging.getLogger("slotpool.lifecycle")


@dataclass
class Termination:
    requester_id: str
    ended: bool
    message: str
    backend_id: Optional[str] = None


@dataclass
class BulkTermination:
    backend_id: str
    cleared: int
    message: str


@dataclass
class Reconciliation:
    backend_id: str
    pruned: int
    active_count: int


class LifecycleManager:
    def __init__(self, registry, sessions, audit=None):
        """
        Initialize lifecycle manager.

        Args:
            registry: BackendRegistry
            sessions: SessionStore
            audit: Optional AuditLog
        """
        self.registry = registry
        self.sessions = sessions
        self.audit = audit

    async def terminate(self, requester_id: Optional[str]) -> Termination:
        """
        End a requester's session.

        Args:
            requester_id: Requester identifier

        Returns:
            Termination; ended=False when there was no session

        Raises:
            InvalidInputError: requester_id is missing or blank
            CorruptStateError: The session record was malformed (the key is still removed)

        Logic:
        1. No session -> success, nothing changes
        2. Decrement the backend's active count (floor 0)
        3. Delete the session record
        4. Remove the requester from the user set
        5. Increment the closed count
        """
        if not requester_id or not requester_id.strip():
            raise InvalidInputError("requester_id is required")

        try:
            record = await self.sessions.load(requester_id)
        except CorruptStateError as e:
            logger.error(f"{e}; removing dangling key")
            await self.sessions.delete(requester_id)
            await self._record(
                AuditEventType.SESSION_DISCARDED, requester_id, None, "Malformed session record"
            )
            raise

        if record is None:
            return Termination(
                requester_id=requester_id,
                ended=False,
                message="No active session found for this user.",
            )

        backend_id = record.backend_id

        if not await self.registry.exists(backend_id):
            # Orphan: the backend and its counters are gone, don't recreate them
            await self.sessions.delete(requester_id)
            logger.warning(f"[{backend_id}] Ended orphaned session for {requester_id}")
            await self._record(
                AuditEventType.SESSION_ENDED,
                requester_id,
                backend_id,
                "Orphaned session ended (backend removed)",
            )
            return Termination(
                requester_id=requester_id,
                ended=True,
                message="Session ended successfully.",
                backend_id=backend_id,
            )

        await self.sessions.decrement_active(backend_id)
        await self.sessions.delete(requester_id)
        await self.sessions.remove_user(backend_id, requester_id)
        await self.sessions.increment_closed(backend_id)

        logger.info(f"[{backend_id}] Ended session for {requester_id}.")
        await self._record(AuditEventType.SESSION_ENDED, requester_id, backend_id, "Session ended")

        return Termination(
            requester_id=requester_id,
            ended=True,
            message="Session ended successfully.",
            backend_id=backend_id,
        )

    async def terminate_all_for_backend(self, backend_id: str) -> BulkTermination:
        """
        End every session bound to a backend.

        Args:
            backend_id: Backend identifier

        Returns:
            BulkTermination with the number of cleared users

        Raises:
            NotFoundError: Backend is not registered

        Logic:
        1. Read the active-user set
        2. Delete the members' session records in one batch, skipping
           members whose current session is on another backend
        3. Zero the active count, add the member count to the closed count,
           clear the set
        """
        if not await self.registry.exists(backend_id):
            raise NotFoundError(f"Backend '{backend_id}' not found")

        users = await self.sessions.active_users(backend_id)

        if users:
            raw_records = await self.sessions.load_many(users)
            to_delete = [
                user for user, raw in raw_records.items()
                if raw is not None and self._bound_to(raw, backend_id)
            ]
            await self.sessions.delete_many(to_delete)

        await self.sessions.reset_backend(backend_id, len(users))

        message = f"Ended {len(users)} session(s)"
        logger.info(f"[{backend_id}] {message}")
        await self._record(
            AuditEventType.BULK_SESSION_ENDED, None, backend_id, message, count=len(users)
        )
        return BulkTermination(backend_id=backend_id, cleared=len(users), message=message)

    async def reconcile(self, backend_id: str) -> Reconciliation:
        """
        Bring a backend's counter back in line with its live sessions.

        Expired sessions leave their requester in the user set and the
        counter raised. This drops members whose session has expired or
        moved to another backend, then sets the active count to the size
        of what is left.

        Raises:
            NotFoundError: Backend is not registered
        """
        if not await self.registry.exists(backend_id):
            raise NotFoundError(f"Backend '{backend_id}' not found")

        users = await self.sessions.active_users(backend_id)
        raw_records = await self.sessions.load_many(users)

        stale = sorted(
            user for user, raw in raw_records.items()
            if raw is None or not self._bound_to(raw, backend_id, malformed=False)
        )
        active = len(users) - len(stale)
        await self.sessions.set_active(backend_id, active, stale)

        logger.info(f"[{backend_id}] Reconciled: {len(stale)} stale member(s), {active} active")
        await self._record(
            AuditEventType.BACKEND_RECONCILED,
            None,
            backend_id,
            f"Pruned {len(stale)} stale member(s)",
            count=len(stale),
        )
        return Reconciliation(backend_id=backend_id, pruned=len(stale), active_count=active)

    @staticmethod
    def _bound_to(raw: str, backend_id: str, malformed: bool = True) -> bool:
        try:
            return SessionRecord.model_validate_json(raw).backend_id == backend_id
        except (ValidationError, ValueError):
            return malformed

    async def _record(self, event_type, requester_id, backend_id, message, count=None) -> None:
        if self.audit is not None:
            await self.audit.record(event_type, requester_id, backend_id, message, count=count)

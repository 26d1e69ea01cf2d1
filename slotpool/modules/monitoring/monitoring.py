import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("slotpool.monitoring")


def mask_credential(credential: str, visible: int = 4) -> str:
    """Keep only the last few characters of a credential."""
    if len(credential) <= visible:
        return "*" * len(credential)
    return "*" * (len(credential) - visible) + credential[-visible:]


@dataclass
class BackendSnapshot:
    id: str
    credential: str
    target_id: str
    capacity: int
    enabled: bool
    active_count: int
    closed_count: int
    available_slots: int
    active_users: List[str] = field(default_factory=list)
    session_ttl: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MonitoringModule:
    def __init__(self, registry, sessions):
        """
        Initialize monitoring.

        Args:
            registry: BackendRegistry
            sessions: SessionStore
        """
        self.registry = registry
        self.sessions = sessions

    async def snapshot(self) -> List[BackendSnapshot]:
        """
        Join every backend with its live counters.

        available_slots is capacity minus the active counter as stored,
        so it goes negative when the counter has drifted past capacity.
        Malformed descriptors are skipped by the registry.
        """
        snapshots = []
        for backend in await self.registry.list():
            counters = await self.sessions.counters(backend.id)
            snapshots.append(
                BackendSnapshot(
                    id=backend.id,
                    credential=mask_credential(backend.credential),
                    target_id=backend.target_id,
                    capacity=backend.capacity,
                    enabled=backend.enabled,
                    active_count=counters.active_count,
                    closed_count=counters.closed_count,
                    available_slots=backend.capacity - counters.active_count,
                    active_users=sorted(counters.active_users),
                    session_ttl=backend.session_ttl,
                )
            )
            if counters.active_count != len(counters.active_users):
                logger.debug(
                    f"Backend {backend.id} counter drift: count={counters.active_count} "
                    f"users={len(counters.active_users)}"
                )
        return snapshots

"""
SlotPool - Session Load Balancer for API Slots

Routes user sessions to a pool of backend credentials ("API slots"),
each with a bounded number of concurrent sessions.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All shared state lives in Redis

Modules:
- config: Environment configuration
- storage: Redis connection and key layout
- errors: Error taxonomy
- models: Shared data models
- registry: Backend descriptor CRUD
- audit: Bounded audit trail
- session: Session records, counters and active-user sets
- admission: Backend selection for new sessions
- lifecycle: Session termination and reconciliation
- monitoring: Per-backend aggregation
"""

__version__ = "1.0.0"

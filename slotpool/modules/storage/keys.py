"""Redis key layout shared by every module that touches the store."""


class KeySpace:
    """
    Builds Redis keys for backends, sessions and the audit log.

    Layout:
        apiPool                      hash: backend id -> JSON descriptor
        api:{id}:sessions            active session counter
        api:{id}:closedSessions      closed session counter
        api:{id}:users               set of bound requester ids
        user:{requester_id}          JSON session record with TTL
        audit:events                 bounded list of JSON audit events
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    @property
    def registry(self) -> str:
        return f"{self.prefix}apiPool"

    @property
    def audit(self) -> str:
        return f"{self.prefix}audit:events"

    def active_count(self, backend_id: str) -> str:
        return f"{self.prefix}api:{backend_id}:sessions"

    def closed_count(self, backend_id: str) -> str:
        return f"{self.prefix}api:{backend_id}:closedSessions"

    def active_users(self, backend_id: str) -> str:
        return f"{self.prefix}api:{backend_id}:users"

    def session(self, requester_id: str) -> str:
        return f"{self.prefix}user:{requester_id}"

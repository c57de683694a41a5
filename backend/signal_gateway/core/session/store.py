"""
Session store: the registry, the waiting pool and the lock that guards both.
"""

from __future__ import annotations

import threading

from signal_gateway.core.session.models import SessionStatus
from signal_gateway.core.session.registry import ConnectionRegistry
from signal_gateway.core.session.waiting_pool import WaitingPool


class SessionStore:
    """
    Shared matchmaking state.

    Every mutation of ``registry`` or ``pool`` happens with ``lock`` held.
    Operations under the lock are synchronous; handles only enqueue.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.pool = WaitingPool()
        self.registry = ConnectionRegistry(self.pool)

    def counts(self) -> tuple[int, int]:
        """(registered, waiting)"""
        return self.registry.count(), len(self.pool)

    def check_invariants(self) -> list[str]:
        """
        Report violations of the pairing and pool invariants.

        Empty list means the state is consistent. Used by tests and debug
        endpoints, never on the hot path.
        """
        problems: list[str] = []
        registry = self.registry

        for user_id in self.pool:
            session = registry.lookup(user_id)
            if session is None:
                problems.append(f"pool member {user_id!r} is not registered")
            elif session.status is not SessionStatus.WAITING:
                problems.append(f"pool member {user_id!r} has status {session.status.value}")
            elif session.partner_id is not None:
                problems.append(f"pool member {user_id!r} has a partner")

        for session in registry.sessions():
            if session.status is SessionStatus.MATCHED:
                partner = registry.lookup(session.partner_id)
                if partner is None:
                    problems.append(f"{session.id!r} matched to unregistered {session.partner_id!r}")
                elif partner.partner_id != session.id:
                    problems.append(f"{session.id!r} -> {session.partner_id!r} is not symmetric")
                elif partner.id == session.id:
                    problems.append(f"{session.id!r} matched to itself")
            elif session.partner_id is not None:
                problems.append(f"{session.id!r} has a partner while {session.status.value}")
            if session.status is SessionStatus.WAITING and session.id not in self.pool:
                problems.append(f"{session.id!r} is waiting outside the pool")

        return problems

"""
Matchmaker: pair a requesting client with the longest-waiting eligible peer.
"""

from __future__ import annotations

import random
from typing import Callable

from shared.config.logging import audit_session_event, get_logger, mask_user_id
from signal_gateway.components.core.constants import OutboundType
from signal_gateway.components.core.errors import TargetNotFound
from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.core.session.models import (
    ClientSession,
    MatchOutcome,
    Matched,
    SessionStatus,
    Waiting,
)
from signal_gateway.core.session.store import SessionStore
from signal_gateway.core.session.teardown import SessionTeardown

logger = get_logger(__name__)


def coin_flip() -> bool:
    return random.random() < 0.5


class Matchmaker:
    """
    Pairs waiting clients. Caller holds the store lock.

    Candidates are taken in pool insertion order. Members whose connection
    is already closed are skipped but left for the liveness monitor to
    evict; members with no registry entry are pruned from the pool.
    """

    def __init__(
        self,
        store: SessionStore,
        teardown: SessionTeardown,
        metrics: MetricsCollector,
        coin: Callable[[], bool] = coin_flip,
    ) -> None:
        self._store = store
        self._teardown = teardown
        self._metrics = metrics
        self._coin = coin

    def request_match(self, user_id: str) -> MatchOutcome:
        """
        Put ``user_id`` in the pool and try to pair it.

        A client that is already matched leaves its current pair first
        (the old partner is notified).

        Raises:
            TargetNotFound: ``user_id`` is not registered.
        """
        registry = self._store.registry
        session = registry.lookup(user_id)
        if session is None:
            raise TargetNotFound(user_id, reason="user not found")

        self._metrics.increment_match_requests()

        if session.partner_id is not None:
            self._teardown.release(user_id, reason="rematch")

        session.status = SessionStatus.WAITING
        self._store.pool.enqueue(user_id)

        candidate = self._find_candidate(user_id)
        if candidate is None:
            self._metrics.increment_match_waiting()
            return Waiting()

        return self._pair(session, candidate)

    def _find_candidate(self, user_id: str) -> ClientSession | None:
        """First eligible waiter other than ``user_id``, pruning vanished ones."""
        registry = self._store.registry
        for member_id in self._store.pool:
            if member_id == user_id:
                continue
            member = registry.lookup(member_id)
            if member is None:
                # Evicted without leaving the pool
                self._store.pool.dequeue(member_id)
                self._metrics.increment_match_aborted()
                logger.warning(
                    "Pruned waiting entry with no session",
                    user_id=mask_user_id(user_id),
                    candidate_id=mask_user_id(member_id),
                )
                continue
            if member.status is not SessionStatus.WAITING or not member.is_open:
                continue
            return member
        return None

    def _pair(self, requester: ClientSession, candidate: ClientSession) -> Matched:
        pool = self._store.pool
        pool.dequeue(requester.id)
        pool.dequeue(candidate.id)

        requester.status = candidate.status = SessionStatus.MATCHED
        requester.partner_id = candidate.id
        candidate.partner_id = requester.id

        requester_initiates = self._coin()

        requester.handle.send({
            "type": OutboundType.MATCHED.value,
            "partnerId": candidate.id,
            "isInitiator": requester_initiates,
        })
        candidate.handle.send({
            "type": OutboundType.MATCHED.value,
            "partnerId": requester.id,
            "isInitiator": not requester_initiates,
        })

        self._metrics.increment_matches_created()
        audit_session_event(
            "MATCHED",
            user_id=requester.id,
            transport=requester.handle.transport,
            partner_id=mask_user_id(candidate.id),
            initiator=mask_user_id(requester.id if requester_initiates else candidate.id),
        )
        return Matched(partner_id=candidate.id, is_initiator=requester_initiates)

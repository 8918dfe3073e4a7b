"""Server side state machine for one-to-one voice calls.

Media never touches the server. What the server does own is the phase of
each user's call so that a second caller gets an immediate decline, an
unanswered call ends after a deadline, and ICE candidates that race ahead
of the answer are held until the callee has picked a tab to answer from.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from app.monitoring.metrics import call_outcomes_total, call_sessions_active
from taskboard.realtime.connections import ConnectionRecord, ConnectionRegistry
from taskboard.realtime.protocol import webrtc_signal

from .signaling import SignalType, decline_signal, hangup_signal, no_answer_signal, signal_kind

logger = logging.getLogger(__name__)

DEFAULT_ANSWER_TIMEOUT_SECONDS = 30.0


class CallPhase(str, Enum):
    IDLE = "idle"
    CALLING = "calling"
    RINGING = "ringing"
    CONNECTED = "connected"


class CallRole(str, Enum):
    CALLER = "caller"
    CALLEE = "callee"


@dataclass(eq=False)
class CallSession:
    """Call state of one user.

    ``connection`` is the tab that owns the call: the one that sent the
    offer for a caller, the one that answered for a callee. A ringing
    callee has no owner yet and every tab rings.
    """

    user_id: int
    peer_id: int
    phase: CallPhase
    role: CallRole
    connection: ConnectionRecord | None = None
    pending_ice: List[Dict[str, Any]] = field(default_factory=list)


class CallCoordinator:
    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        timeout_seconds: float = DEFAULT_ANSWER_TIMEOUT_SECONDS,
    ) -> None:
        self._registry = registry
        self._timeout_seconds = timeout_seconds
        self._sessions: Dict[int, CallSession] = {}
        self._timers: Dict[int, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------
    def phase_of(self, user_id: int) -> CallPhase:
        session = self._sessions.get(user_id)
        return session.phase if session is not None else CallPhase.IDLE

    def session_for(self, user_id: int) -> CallSession | None:
        return self._sessions.get(user_id)

    def is_busy(self, user_id: int) -> bool:
        return user_id in self._sessions

    # ------------------------------------------------------------------
    # Inbound signals
    # ------------------------------------------------------------------
    async def handle_signal(
        self,
        connection: ConnectionRecord,
        to_user_id: int,
        signal: Dict[str, Any],
    ) -> bool:
        """Apply one client signal; returns ``False`` when it was discarded."""

        sender_id = connection.user_id
        if to_user_id == sender_id:
            logger.debug("Discarding self-addressed signal from user %s", sender_id)
            return False

        kind = signal_kind(signal)
        if kind is SignalType.OFFER:
            return await self._offer(connection, to_user_id, signal)
        if kind is SignalType.ANSWER:
            return await self._answer(connection, to_user_id, signal)
        if kind is SignalType.ICE_CANDIDATE:
            return await self._ice_candidate(connection, to_user_id, signal)
        if kind is SignalType.DECLINE:
            return await self._decline(connection, to_user_id, signal)
        if kind is SignalType.HANGUP:
            return await self._hangup(connection, to_user_id, signal)
        logger.debug("Discarding signal with unknown type from user %s", sender_id)
        return False

    async def _offer(self, connection: ConnectionRecord, callee_id: int, signal: Dict[str, Any]) -> bool:
        caller_id = connection.user_id

        if callee_id in self._sessions or not self._registry.is_online(callee_id):
            outcome = "busy" if callee_id in self._sessions else "offline"
            logger.debug(
                "Auto-declining offer from user %s: callee %s is %s", caller_id, callee_id, outcome
            )
            call_outcomes_total.labels(outcome).inc()
            await self._registry.send(connection, webrtc_signal(callee_id, decline_signal()))
            return True

        if caller_id in self._sessions:
            logger.debug("Dropping offer from busy user %s", caller_id)
            return False

        self._sessions[caller_id] = CallSession(
            user_id=caller_id,
            peer_id=callee_id,
            phase=CallPhase.CALLING,
            role=CallRole.CALLER,
            connection=connection,
        )
        self._sessions[callee_id] = CallSession(
            user_id=callee_id,
            peer_id=caller_id,
            phase=CallPhase.RINGING,
            role=CallRole.CALLEE,
        )
        self._update_gauge()
        self._start_timer(caller_id, callee_id)
        logger.debug("User %s calling user %s", caller_id, callee_id)

        await self._registry.emit(callee_id, webrtc_signal(caller_id, signal))
        return True

    async def _answer(self, connection: ConnectionRecord, caller_id: int, signal: Dict[str, Any]) -> bool:
        callee_id = connection.user_id
        callee = self._sessions.get(callee_id)
        caller = self._sessions.get(caller_id)
        if (
            callee is None
            or caller is None
            or callee.phase is not CallPhase.RINGING
            or callee.peer_id != caller_id
            or caller.peer_id != callee_id
        ):
            logger.debug("Discarding answer from user %s to user %s", callee_id, caller_id)
            return False

        self._cancel_timer(caller_id)
        callee.phase = CallPhase.CONNECTED
        callee.connection = connection
        caller.phase = CallPhase.CONNECTED
        to_caller = caller.pending_ice
        to_callee = callee.pending_ice
        caller.pending_ice = []
        callee.pending_ice = []
        logger.debug("Call between user %s and user %s connected", caller_id, callee_id)

        await self._deliver(caller, webrtc_signal(callee_id, signal))
        for candidate in to_caller:
            await self._deliver(caller, webrtc_signal(callee_id, candidate))
        for candidate in to_callee:
            await self._deliver(callee, webrtc_signal(caller_id, candidate))
        await self._stop_ringing(callee_id, caller_id, keep=connection)
        return True

    async def _ice_candidate(self, connection: ConnectionRecord, target_id: int, signal: Dict[str, Any]) -> bool:
        sender_id = connection.user_id
        if not self._are_peers(sender_id, target_id):
            logger.debug("Discarding ICE candidate from user %s to user %s", sender_id, target_id)
            return False

        target = self._sessions[target_id]
        if target.phase is not CallPhase.CONNECTED:
            target.pending_ice.append(signal)
            return True

        await self._deliver(target, webrtc_signal(sender_id, signal))
        return True

    async def _decline(self, connection: ConnectionRecord, caller_id: int, signal: Dict[str, Any]) -> bool:
        callee_id = connection.user_id
        callee = self._sessions.get(callee_id)
        if (
            callee is None
            or callee.phase is not CallPhase.RINGING
            or not self._are_peers(callee_id, caller_id)
        ):
            logger.debug("Discarding decline from user %s to user %s", callee_id, caller_id)
            return False

        caller = self._sessions[caller_id]
        self._end_call(caller_id, callee_id, outcome="declined")
        await self._deliver(caller, webrtc_signal(callee_id, signal))
        await self._stop_ringing(callee_id, caller_id, keep=connection)
        return True

    async def _hangup(self, connection: ConnectionRecord, target_id: int, signal: Dict[str, Any]) -> bool:
        sender_id = connection.user_id
        if not self._are_peers(sender_id, target_id):
            logger.debug("Discarding hangup from user %s to user %s", sender_id, target_id)
            return False

        await self._terminate(sender_id, target_id, signal)
        return True

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def disconnect(self, connection: ConnectionRecord) -> None:
        """Treat losing the call's tab as a hangup from that user."""

        user_id = connection.user_id
        session = self._sessions.get(user_id)
        if session is None:
            return

        if session.connection is connection:
            owned = True
        elif session.connection is None and session.phase is CallPhase.RINGING:
            remaining = [
                record
                for record in self._registry.connections_for(user_id)
                if record is not connection and record.is_open
            ]
            owned = not remaining
        else:
            owned = False

        if not owned:
            return

        logger.debug("Connection %s of user %s closed during a call", connection.id, user_id)
        await self._terminate(user_id, session.peer_id, hangup_signal())

    async def shutdown(self) -> None:
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        for timer in timers:
            try:
                await timer
            except asyncio.CancelledError:
                pass
        self._sessions.clear()
        self._update_gauge()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _are_peers(self, user_id: int, peer_id: int) -> bool:
        mine = self._sessions.get(user_id)
        theirs = self._sessions.get(peer_id)
        return (
            mine is not None
            and theirs is not None
            and mine.peer_id == peer_id
            and theirs.peer_id == user_id
        )

    async def _terminate(self, sender_id: int, target_id: int, signal: Dict[str, Any]) -> None:
        sender = self._sessions[sender_id]
        target = self._sessions[target_id]
        if sender.phase is CallPhase.CONNECTED:
            outcome = "completed"
        elif sender.role is CallRole.CALLER:
            outcome = "cancelled"
        else:
            outcome = "declined"

        if sender.role is CallRole.CALLER:
            self._end_call(sender_id, target_id, outcome=outcome)
        else:
            self._end_call(target_id, sender_id, outcome=outcome)
        await self._deliver(target, webrtc_signal(sender_id, signal))

    def _end_call(self, caller_id: int, callee_id: int, *, outcome: str) -> None:
        self._cancel_timer(caller_id)
        self._sessions.pop(caller_id, None)
        self._sessions.pop(callee_id, None)
        self._update_gauge()
        call_outcomes_total.labels(outcome).inc()
        logger.debug("Call between user %s and user %s ended: %s", caller_id, callee_id, outcome)

    async def _deliver(self, session: CallSession | None, event: Dict[str, Any]) -> None:
        if session is None:
            return
        if session.connection is not None:
            await self._registry.send(session.connection, event)
        else:
            await self._registry.emit(session.user_id, event)

    async def _stop_ringing(self, callee_id: int, caller_id: int, *, keep: ConnectionRecord) -> None:
        """Tell the callee's other tabs that the call was picked up or refused elsewhere."""

        event = webrtc_signal(caller_id, hangup_signal())
        for record in self._registry.connections_for(callee_id):
            if record is not keep:
                await self._registry.send(record, event)

    def _start_timer(self, caller_id: int, callee_id: int) -> None:
        self._cancel_timer(caller_id)
        self._timers[caller_id] = asyncio.create_task(
            self._answer_deadline(caller_id, callee_id),
            name=f"call-timeout-{caller_id}-{callee_id}",
        )

    def _cancel_timer(self, caller_id: int) -> None:
        timer = self._timers.pop(caller_id, None)
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _answer_deadline(self, caller_id: int, callee_id: int) -> None:
        await asyncio.sleep(self._timeout_seconds)
        self._timers.pop(caller_id, None)

        caller = self._sessions.get(caller_id)
        if caller is None or caller.phase is not CallPhase.CALLING or caller.peer_id != callee_id:
            return

        callee = self._sessions.get(callee_id)
        self._end_call(caller_id, callee_id, outcome="no_answer")
        logger.info("Call from user %s to user %s was not answered in time", caller_id, callee_id)
        await self._deliver(caller, webrtc_signal(callee_id, no_answer_signal()))
        await self._deliver(callee, webrtc_signal(caller_id, hangup_signal()))

    def _update_gauge(self) -> None:
        call_sessions_active.set(len(self._sessions))


__all__ = ["CallCoordinator", "CallPhase", "CallRole", "CallSession", "DEFAULT_ANSWER_TIMEOUT_SECONDS"]

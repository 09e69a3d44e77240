"""
Dialog Engine — per-user finite-state dialogs with serialized input delivery.

Each user gets a Session: a current state, a FIFO queue of pending input
contexts and an `active` flag. The state table maps a state name to an async
handler that receives the current context and returns a Transition:

    next_state   the state to move to
    suspend      True  → stop and wait for the next queued input
                 False → run next_state's handler now on the same input
    patch        partial context overlaid on the next handler call

Flow:
  Inbound message
    → create(context)            new session, loop starts
    → continue_session(id, ctx)  enqueue; start a loop only if none is running
    → loop pops the oldest input, runs handlers until one suspends
    → next input, until the queue drains

Guarantees:
  - One execution loop per session at a time; handlers of a session never overlap
  - Different sessions run concurrently on the event loop
  - A failing handler aborts only the current input; `active` is always cleared
"""
from __future__ import annotations

import asyncio
import secrets
import structlog
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable, Mapping, Optional, Union

logger = structlog.get_logger()


# ──────────────────────────────────────────────────────────────
#  Errors
# ──────────────────────────────────────────────────────────────

class DialogError(Exception):
    """Base exception for dialog engine failures."""


class UnknownSessionError(DialogError, KeyError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"No dialog session '{session_id}'")


class UnknownStateError(DialogError):
    def __init__(self, state: Any):
        self.state = state
        super().__init__(f"Handler returned unknown state {state!r}")


class DialogLoopError(DialogError):
    """Too many transitions without a suspension on a single input."""


# ──────────────────────────────────────────────────────────────
#  Transition Result
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Transition:
    """Outcome of one handler call."""
    next_state: Hashable
    suspend: bool = False
    patch: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, result: Union[Transition, tuple]) -> Transition:
        """Accept a Transition or a (next_state, suspend[, patch]) tuple."""
        if isinstance(result, Transition):
            return result
        if isinstance(result, tuple) and 2 <= len(result) <= 3:
            next_state, suspend, *rest = result
            return cls(next_state, bool(suspend), dict(rest[0] or {}) if rest else {})
        raise DialogError(f"Handler returned {result!r}, expected a Transition")

    def __repr__(self):
        action = "suspend" if self.suspend else "continue"
        return f"<Transition → {self.next_state} [{action}]>"


Handler = Callable[[Any], Awaitable[Union[Transition, tuple]]]


# ──────────────────────────────────────────────────────────────
#  Session
# ──────────────────────────────────────────────────────────────

@dataclass
class Session:
    session_id: str
    state: Hashable
    active: bool = False
    queued_contexts: deque = field(default_factory=deque)
    last_patch: Mapping[str, Any] = field(default_factory=dict)
    task: Optional[asyncio.Task] = None
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    processed_inputs: int = 0
    failed_inputs: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": _state_name(self.state),
            "active": self.active,
            "queued": len(self.queued_contexts),
            "processed_inputs": self.processed_inputs,
            "failed_inputs": self.failed_inputs,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
        }


def _state_name(state: Any) -> str:
    return str(getattr(state, "value", state))


def _merge(context: Any, patch: Mapping[str, Any]) -> Any:
    if not patch:
        return context
    if hasattr(context, "merge"):
        return context.merge(patch)
    if isinstance(context, Mapping):
        return {**context, **patch}
    raise DialogError(f"Cannot merge a patch into {type(context).__name__}")


# ──────────────────────────────────────────────────────────────
#  Engine
# ──────────────────────────────────────────────────────────────

class DialogEngine:
    """
    Owns all sessions and runs their execution loops as asyncio tasks.
    The state table is fixed at construction.
    """

    def __init__(
        self,
        handlers: Mapping[Hashable, Handler],
        initial_state: Hashable,
        max_transitions: int = 64,
    ):
        if not handlers:
            raise ValueError("Dialog engine needs at least one state handler")
        if initial_state not in handlers:
            raise ValueError(f"initial_state {initial_state!r} has no handler")
        if max_transitions < 1:
            raise ValueError("max_transitions must be at least 1")

        self._handlers = dict(handlers)
        self.initial_state = initial_state
        self.max_transitions = max_transitions
        self._sessions: dict[str, Session] = {}

    # ── Public contract ───────────────────────────────────────

    def create(self, context: Any) -> str:
        """Allocate a session, queue its first input and start executing."""
        session_id = self._new_session_id()
        session = Session(session_id=session_id, state=self.initial_state)
        session.queued_contexts.append(context)
        self._sessions[session_id] = session

        logger.info("dialog_session_created",
                    session_id=session_id,
                    initial_state=_state_name(self.initial_state))
        self._start(session)
        return session_id

    def continue_session(self, session_id: str, context: Any) -> None:
        """Queue an input; the running loop picks it up, or a new loop starts."""
        session = self.get_session(session_id)
        session.queued_contexts.append(context)
        session.last_activity = time.time()

        if session.active:
            logger.debug("dialog_input_queued",
                         session_id=session_id,
                         queued=len(session.queued_contexts))
            return
        self._start(session)

    async def join(self, session_id: str) -> None:
        """Wait until the session has no running loop."""
        session = self.get_session(session_id)
        while session.active and session.task is not None:
            await asyncio.shield(session.task)

    async def join_all(self) -> None:
        for session_id in list(self._sessions):
            await self.join(session_id)

    # ── Introspection ─────────────────────────────────────────

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise UnknownSessionError(session_id) from None

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def is_active(self, session_id: str) -> bool:
        return self.get_session(session_id).active

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    @property
    def states(self) -> list[Hashable]:
        return list(self._handlers)

    @property
    def count(self) -> int:
        return len(self._sessions)

    # ── Execution ─────────────────────────────────────────────

    def _new_session_id(self) -> str:
        session_id = secrets.token_hex(5)
        while session_id in self._sessions:
            session_id = secrets.token_hex(5)
        return session_id

    def _start(self, session: Session):
        # Mark active before the task runs so a second call only enqueues
        session.active = True
        session.task = asyncio.get_running_loop().create_task(
            self._execute(session),
            name=f"dialog-{session.session_id}",
        )

    async def _execute(self, session: Session):
        try:
            while session.queued_contexts:
                context = session.queued_contexts.popleft()
                try:
                    await self._run_input(session, context)
                    session.processed_inputs += 1
                except Exception as e:
                    session.failed_inputs += 1
                    session.last_patch = {}
                    logger.error("dialog_input_failed",
                                 session_id=session.session_id,
                                 state=_state_name(session.state),
                                 error=str(e),
                                 exc_info=True)
        finally:
            session.active = False
            session.last_activity = time.time()

    async def _run_input(self, session: Session, context: Any):
        context = _merge(context, session.last_patch)

        for _ in range(self.max_transitions):
            from_state = session.state
            handler = self._handlers[from_state]
            result = Transition.coerce(await handler(context))

            if result.next_state not in self._handlers:
                raise UnknownStateError(result.next_state)

            session.state = result.next_state
            session.last_patch = dict(result.patch)

            logger.debug("dialog_transition",
                         session_id=session.session_id,
                         transition=f"{_state_name(from_state)} → {_state_name(result.next_state)}",
                         suspend=result.suspend)

            if result.suspend:
                return
            context = _merge(context, result.patch)

        raise DialogLoopError(
            f"Session '{session.session_id}' made {self.max_transitions} "
            f"transitions without suspending"
        )

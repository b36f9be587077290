"""Live state machine tracking one research run."""

from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, replace
from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple, Union

from research_client.api.auth import CredentialProvider, acquire_token
from research_client.api.client import ResearchApiClient
from research_client.api.stream import Subscription, WebSocketSubscription, parse_frame
from research_client.core.errors import (
    CredentialError,
    ResearchClientError,
    SubmissionError,
    TransportError,
)
from research_client.core.settings import Settings, get_settings
from research_client.models.enums import RunStatus, SessionStatus, StageStatus
from research_client.models.events import RunEvent
from research_client.models.run import RunRecord, utc_now
from research_client.models.stages import DEFAULT_STAGES, Stage, StageProgress
from research_client.services.run_store import RunStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventReceived:
    event: RunEvent


@dataclass(frozen=True, slots=True)
class StreamClosed:
    """The transport closed without a fault."""


@dataclass(frozen=True, slots=True)
class StreamFailed:
    error: TransportError


InboundMessage = Union[EventReceived, StreamClosed, StreamFailed]


@dataclass(frozen=True, slots=True)
class SessionState:
    status: SessionStatus = SessionStatus.IDLE
    run_id: Optional[str] = None
    log: Tuple[RunEvent, ...] = ()


def reduce(state: SessionState, message: InboundMessage) -> SessionState:
    """Apply one inbound message. Only a running session reacts to messages."""

    if state.status is not SessionStatus.RUNNING:
        return state
    if isinstance(message, EventReceived):
        status = SessionStatus.DONE if message.event.is_terminal else SessionStatus.RUNNING
        return replace(state, status=status, log=state.log + (message.event,))
    if isinstance(message, StreamClosed):
        # a close without "done" still counts as success
        return replace(state, status=SessionStatus.DONE)
    if isinstance(message, StreamFailed):
        return replace(state, status=SessionStatus.ERROR)
    return state


def stage_progress(
    log: Sequence[RunEvent],
    status: SessionStatus,
    stages: Sequence[Stage] = DEFAULT_STAGES,
) -> List[StageProgress]:
    """Project the log onto the stage vocabulary.

    Seen stages are completed. While running, the first unseen stage is in
    progress and the rest have not started.
    """

    seen = {event.kind for event in log}
    pending_marked = status is not SessionStatus.RUNNING
    progress = []
    for stage in stages:
        if stage.kind in seen:
            progress.append(StageProgress(stage, StageStatus.COMPLETED))
        elif not pending_marked:
            progress.append(StageProgress(stage, StageStatus.IN_PROGRESS))
            pending_marked = True
        else:
            progress.append(StageProgress(stage, StageStatus.NOT_STARTED))
    return progress


SubscriptionFactory = Callable[[str, str, str], Subscription]


class RunSession:
    """Tracks exactly one run from submission to a terminal status.

    The session owns its event log; it only mirrors a summary (status, event
    count, finish time) into the shared RunStore. A finished or failed
    session never restarts; start a new session instead.
    """

    def __init__(
        self,
        query: str,
        api: ResearchApiClient,
        store: RunStore,
        credentials: CredentialProvider,
        settings: Optional[Settings] = None,
        subscribe: Optional[SubscriptionFactory] = None,
    ) -> None:
        self.query = query
        self._api = api
        self._store = store
        self._credentials = credentials
        self._settings = settings or get_settings()
        self._subscribe = subscribe or self._websocket_subscription
        self._state = SessionState()
        self._subscription: Optional[Subscription] = None
        self.failure: Optional[ResearchClientError] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def run_id(self) -> Optional[str]:
        return self._state.run_id

    @property
    def log(self) -> Tuple[RunEvent, ...]:
        return self._state.log

    def stages(self) -> List[StageProgress]:
        return stage_progress(self._state.log, self._state.status)

    def _websocket_subscription(self, run_id: str, query: str, token: str) -> Subscription:
        return WebSocketSubscription.for_run(self._settings, run_id, query, token=token)

    async def start(self) -> SessionState:
        """Submit the query and open the event subscription."""

        if self._state.status is not SessionStatus.IDLE:
            raise RuntimeError(f"Session already {self._state.status.value}")
        try:
            token = await acquire_token(self._credentials, self._settings.auth_audience)
            run_id = await self._api.start_research(self.query, token)
        except (CredentialError, SubmissionError) as exc:
            self.failure = exc
            self._state = replace(self._state, status=SessionStatus.ERROR)
            logger.warning("Run submission failed: %s", exc)
            return self._state

        self._state = SessionState(status=SessionStatus.RUNNING, run_id=run_id)
        self._store.add(RunRecord.start(run_id, self.query))
        self._subscription = self._subscribe(run_id, self.query, token)
        logger.info("Run %s running", run_id)
        return self._state

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Typed inbound messages of the subscription, malformed frames removed.

        The sequence always ends with StreamClosed or StreamFailed unless the
        consumer stops early.
        """

        if self._subscription is None:
            return
        try:
            async with aclosing(self._subscription.frames()) as frames:
                async for frame in frames:
                    event = parse_frame(frame)
                    if event is None:
                        logger.debug("Dropped malformed frame for run %s", self.run_id)
                        continue
                    yield EventReceived(event)
        except TransportError as exc:
            yield StreamFailed(exc)
        else:
            yield StreamClosed()

    async def follow(self) -> AsyncIterator[SessionState]:
        """Consume messages, yielding the state after every change.

        The subscription is closed when the run reaches a terminal state or
        the generator is closed. Consumers that may stop early should wrap
        it in ``contextlib.aclosing`` so that happens right away.
        """

        if self._state.status is not SessionStatus.RUNNING:
            return
        try:
            async with aclosing(self.messages()) as messages:
                async for message in messages:
                    previous = self._state
                    self._state = reduce(previous, message)
                    if self._state is previous:
                        continue
                    if isinstance(message, StreamFailed):
                        self.failure = message.error
                        logger.warning("Run %s stream failed: %s", self.run_id, message.error)
                    self._mirror(previous, self._state)
                    yield self._state
                    if self._state.status.is_terminal:
                        break
        finally:
            await self.stop()

    async def run(self) -> SessionState:
        if self._state.status is SessionStatus.IDLE:
            await self.start()
        async for _ in self.follow():
            pass
        return self._state

    async def stop(self) -> None:
        """Close the subscription. The resulting close event decides the status."""

        if self._subscription is not None:
            await self._subscription.close()

    def _mirror(self, previous: SessionState, current: SessionState) -> None:
        if current.run_id is None:
            return
        fields = {}
        if len(current.log) != len(previous.log):
            fields["event_count"] = len(current.log)
        if current.status is not previous.status:
            fields["status"] = RunStatus(current.status.value)
            fields["finished_at"] = utc_now()
            logger.info("Run %s %s after %d events", current.run_id, current.status.value, len(current.log))
        if fields:
            self._store.update(current.run_id, **fields)

"""
Streaming Orchestrator - runs classification and routing off the request path.

Each streaming request gets a StreamSession: a small state machine plus a
bounded queue that hands events from the background producer task to the
consumer (the HTTP response). The consumer side drives the terminal
transitions:

    CREATED -> RUNNING -> COMPLETED | FAILED | TIMED_OUT | CANCELLED

Terminal states are final. Once a session is closed, producer sends are
no-ops, and a producer still running after the grace period is cancelled.
"""

import asyncio
import uuid
from enum import Enum
from typing import AsyncIterator, Optional, Set

from pydantic import BaseModel, ConfigDict

from common.logging import get_logger
from gateway.config import StreamingSettings
from gateway.exceptions import SessionFailureError, SessionTimeoutError
from gateway.models import ErrorResponse
from model_router.classifier import TierClassifier
from model_router.models import ChatRequest, ChatResponse, RoutingTier
from model_router.router import ModelRouter

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a streaming session."""

    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset(
    {SessionState.COMPLETED, SessionState.TIMED_OUT, SessionState.FAILED, SessionState.CANCELLED}
)


class StreamEventType(str, Enum):
    CHUNK = "chunk"
    DONE = "done"
    ERROR = "error"


class StreamEvent(BaseModel):
    """
    One item on a session's queue.

    CHUNK carries a chunk response, ERROR carries the error body, DONE
    carries nothing.
    """

    type: StreamEventType
    chunk: Optional[ChatResponse] = None
    error: Optional[ErrorResponse] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def of_chunk(cls, chunk: ChatResponse) -> "StreamEvent":
        return cls(type=StreamEventType.CHUNK, chunk=chunk)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type=StreamEventType.DONE)

    @classmethod
    def failure(cls, error: ErrorResponse) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error)


class StreamSession:
    """
    One streaming request from creation to a terminal state.

    The producer task writes with send()/send_chunk(); the consumer reads
    with events(). Only the owning orchestrator's task writes to the queue.
    """

    def __init__(
        self,
        request: ChatRequest,
        settings: Optional[StreamingSettings] = None,
        session_id: Optional[str] = None,
    ):
        self._settings = settings or StreamingSettings()
        self.session_id = session_id or uuid.uuid4().hex
        self.request = request
        self.tier: Optional[RoutingTier] = None
        self.error: Optional[Exception] = None
        self.chunks_sent = 0

        self._state = SessionState.CREATED
        self._queue: "asyncio.Queue[StreamEvent]" = asyncio.Queue(maxsize=self._settings.queue_size)
        self._closed = False
        self._task: Optional[asyncio.Task] = None
        self._cancel_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def attach(self, task: asyncio.Task) -> None:
        """Bind the producer task; a closed session cancels it after the grace period."""
        self._task = task
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if self._cancel_handle is not None:
            self._cancel_handle.cancel()
            self._cancel_handle = None

    def _transition(self, new_state: SessionState) -> bool:
        if self.is_terminal:
            return False
        old_state = self._state
        self._state = new_state
        logger.debug(
            "stream_session_state_changed",
            session_id=self.session_id,
            from_state=old_state.value,
            to_state=new_state.value,
        )
        return True

    def mark_running(self) -> bool:
        if self._state != SessionState.CREATED:
            return False
        return self._transition(SessionState.RUNNING)

    async def send(self, event: StreamEvent) -> bool:
        """
        Queue an event for the consumer, waiting while the queue is full.

        Returns:
            False if the session is already closed and the event was dropped
        """
        if self._closed:
            return False
        await self._queue.put(event)
        return True

    async def send_chunk(self, chunk: ChatResponse) -> None:
        """Chunk callback handed to the router."""
        if await self.send(StreamEvent.of_chunk(chunk)):
            self.chunks_sent += 1

    async def events(self) -> AsyncIterator[StreamEvent]:
        """
        Yield events in production order until the session ends.

        DONE and ERROR are yielded as the last event. An inactivity timeout
        ends the iteration without a further event. Leaving the iteration
        early cancels the session.
        """
        timeout = self._settings.inactivity_timeout_seconds
        try:
            while True:
                try:
                    event = await asyncio.wait_for(self._queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    self.error = SessionTimeoutError(
                        f"No stream event within {timeout} seconds"
                    )
                    if self._transition(SessionState.TIMED_OUT):
                        logger.warning(
                            "stream_session_timed_out",
                            session_id=self.session_id,
                            timeout_seconds=timeout,
                            chunks_sent=self.chunks_sent,
                        )
                    return

                if event.type == StreamEventType.CHUNK:
                    yield event
                    continue

                if event.type == StreamEventType.DONE:
                    if self._transition(SessionState.COMPLETED):
                        logger.info(
                            "stream_session_completed",
                            session_id=self.session_id,
                            chunks_sent=self.chunks_sent,
                        )
                else:
                    message = event.error.error.message if event.error else "Streaming failed"
                    self.error = SessionFailureError(message)
                    self._transition(SessionState.FAILED)
                yield event
                return
        finally:
            self.close()

    def fail(self, error: Exception) -> None:
        """End the session as FAILED from the consumer side (e.g. rejected output)."""
        self.error = error
        if self._transition(SessionState.FAILED):
            logger.warning(
                "stream_session_failed",
                session_id=self.session_id,
                error=str(error),
                error_type=type(error).__name__,
            )
        self.close()

    def close(self) -> None:
        """
        Close the session. Idempotent.

        A session closed before reaching a terminal state is CANCELLED.
        Pending events are discarded so a producer blocked on a full queue
        is released; its later sends are dropped.
        """
        if self._closed:
            return
        self._closed = True

        if self._transition(SessionState.CANCELLED):
            logger.info(
                "stream_session_cancelled",
                session_id=self.session_id,
                chunks_sent=self.chunks_sent,
            )

        while not self._queue.empty():
            self._queue.get_nowait()

        if self._task is not None and not self._task.done():
            loop = self._task.get_loop()
            self._cancel_handle = loop.call_later(
                self._settings.cancel_grace_seconds, self._task.cancel
            )


class StreamingOrchestrator:
    """
    Opens streaming sessions and runs their producer tasks.

    One lightweight asyncio task per session; the request path never waits
    on it.

    Args:
        classifier: Assigns the routing tier
        router: Walks the tier's chain and streams chunks
        settings: Queue size, inactivity timeout and cancel grace period
    """

    def __init__(
        self,
        classifier: TierClassifier,
        router: ModelRouter,
        settings: Optional[StreamingSettings] = None,
    ):
        self._classifier = classifier
        self._router = router
        self._settings = settings or StreamingSettings()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_sessions(self) -> int:
        return len(self._tasks)

    def open_session(self, request: ChatRequest) -> StreamSession:
        """
        Create a session and schedule its producer. Must run inside the event loop.
        """
        session = StreamSession(request, self._settings)
        task = asyncio.create_task(
            self._produce(session, request), name=f"stream-{session.session_id}"
        )
        session.attach(task)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug("stream_session_opened", session_id=session.session_id)
        return session

    async def _produce(self, session: StreamSession, request: ChatRequest) -> None:
        session.mark_running()
        try:
            tier = self._classifier.classify(request)
            session.tier = tier
            logger.info(
                "streaming_request_classified", session_id=session.session_id, tier=tier.value
            )
            await self._router.route_streaming(request, tier, session.send_chunk)
        except asyncio.CancelledError:
            logger.info("stream_producer_cancelled", session_id=session.session_id)
            raise
        except Exception as e:
            logger.error(
                "stream_producer_failed",
                session_id=session.session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await session.send(StreamEvent.failure(ErrorResponse.api_error(str(e))))
            return

        await session.send(StreamEvent.done())

    async def shutdown(self) -> None:
        """Cancel every live producer task and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("streaming_orchestrator_shutdown", cancelled_tasks=len(tasks))

"""
Ordered, cancellable delivery of generated artifacts.

A delivery session walks the artifact with a single cursor, so chunk
order is structural rather than a property of timer scheduling. Pacing
between chunks waits on the session's cancel event, which makes a
cancellation visible before the next chunk is produced.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Optional, Union
from uuid import uuid4

from .generation import Artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """One piece of the artifact; indices start at 0 with no gaps."""
    index: int
    data: str


@dataclass(frozen=True)
class Complete:
    """Terminal event: every chunk was delivered."""


@dataclass(frozen=True)
class Cancelled:
    """Terminal event: the consumer cancelled the session."""


@dataclass(frozen=True)
class Failed:
    """Terminal event: the chunk source raised mid-delivery."""
    reason: str


DeliveryEvent = Union[Chunk, Complete, Cancelled, Failed]


class DeliverySession:
    """One in-flight delivery; iterate it exactly once to receive events.

    The session leaves its stream's registry as soon as its outcome is
    settled: after the terminal event, or immediately when it is
    cancelled before iteration starts.
    """

    def __init__(
        self,
        session_id: str,
        chunks: Iterable[str],
        chunk_delay: float = 0.0,
        on_close: Optional[Callable[[str], None]] = None
    ):
        self.session_id = session_id
        self.next_index = 0
        self.chunk_delay = chunk_delay
        self._chunks = chunks
        self._on_close = on_close
        self._cancel_event = threading.Event()
        # guards cancel() against the choice of terminal event
        self._state_lock = threading.Lock()
        self._started = False
        self._concluded = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def finished(self) -> bool:
        return self._finished

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            False if the session had already reached its terminal event
        """
        with self._state_lock:
            if self._concluded:
                return False
            self._cancel_event.set()
            unstarted = not self._started
        if unstarted:
            self._finish()
        return True

    def __iter__(self) -> Iterator[DeliveryEvent]:
        return self.events()

    def events(self) -> Iterator[DeliveryEvent]:
        """Yield Chunk events in order followed by one terminal event.

        Raises:
            RuntimeError: If the session is iterated a second time
        """
        with self._state_lock:
            if self._started:
                raise RuntimeError(f"Delivery session {self.session_id} already started")
            self._started = True
        return self._run()

    def _run(self) -> Iterator[DeliveryEvent]:
        cursor = iter(self._chunks)
        try:
            while True:
                if self.next_index and self.chunk_delay > 0:
                    self._cancel_event.wait(self.chunk_delay)
                if self._cancel_event.is_set():
                    yield self._conclude(Cancelled())
                    return

                try:
                    data = next(cursor)
                except StopIteration:
                    break
                except Exception as e:
                    logger.warning("Delivery %s failed at chunk %d: %s", self.session_id, self.next_index, e)
                    yield self._conclude(Failed(str(e)))
                    return

                with self._state_lock:
                    cancelled = self._cancel_event.is_set()
                    index = self.next_index
                    if not cancelled:
                        self.next_index += 1
                if cancelled:
                    yield self._conclude(Cancelled())
                    return
                yield Chunk(index, data)

            yield self._conclude(Complete())
        finally:
            self._finish()

    def _conclude(self, event: DeliveryEvent) -> DeliveryEvent:
        """Settle the terminal event; a cancel that got in first wins."""
        with self._state_lock:
            self._concluded = True
            if self._cancel_event.is_set():
                event = Cancelled()
        self._finish()
        return event

    def _finish(self) -> None:
        with self._state_lock:
            if self._finished:
                return
            self._finished = True
        logger.debug("Delivery %s closed after %d chunks", self.session_id, self.next_index)
        if self._on_close is not None:
            self._on_close(self.session_id)


class DeliveryStream:
    """Registry of independent delivery sessions."""

    def __init__(self, chunk_delay: float = 0.0):
        if chunk_delay < 0:
            raise ValueError("chunk_delay must be >= 0")
        self.chunk_delay = chunk_delay
        self._lock = threading.Lock()
        self._sessions: Dict[str, DeliverySession] = {}

    def start(self, artifact: Union[Artifact, Iterable[str]]) -> DeliverySession:
        """Open a session for an artifact or any ordered chunk iterable."""
        chunks = artifact.chunks if isinstance(artifact, Artifact) else artifact
        session = DeliverySession(
            session_id=uuid4().hex,
            chunks=chunks,
            chunk_delay=self.chunk_delay,
            on_close=self._close
        )
        with self._lock:
            self._sessions[session.session_id] = session
        return session

    def cancel(self, session_id: str) -> bool:
        """Cancel a session by id.

        Returns:
            False if the session is unknown or already finished
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return False
        return session.cancel()

    def get(self, session_id: str) -> Optional[DeliverySession]:
        with self._lock:
            return self._sessions.get(session_id)

    @property
    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self) -> None:
        """Cancel every open session and empty the registry.

        Sessions still being iterated end with Cancelled.
        """
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.cancel()
        if sessions:
            logger.info("Closed %d open delivery sessions", len(sessions))

    def _close(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

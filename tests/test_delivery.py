"""
Tests for ordered, cancellable delivery.
"""

import threading

import pytest

from paygate.core.delivery import (
    Cancelled,
    Chunk,
    Complete,
    DeliveryStream,
    Failed
)
from paygate.core.generation import Artifact


def _failing_chunks():
    yield "a"
    yield "b"
    raise ConnectionError("backend stream dropped")


class TestDeliveryOrder:
    """Test chunk ordering and termination."""

    def setup_method(self):
        self.stream = DeliveryStream()

    def test_chunks_in_order_then_complete(self):
        artifact = Artifact.from_text("hello world")
        events = list(self.stream.start(artifact))

        chunks = events[:-1]
        assert [c.index for c in chunks] == list(range(len(artifact)))
        assert "".join(c.data for c in chunks) == "hello world"
        assert events[-1] == Complete()
        assert sum(isinstance(e, Complete) for e in events) == 1

    def test_empty_artifact_completes(self):
        assert list(self.stream.start(Artifact(()))) == [Complete()]

    def test_plain_iterable_source(self):
        events = list(self.stream.start(iter(["x", "y"])))
        assert events == [Chunk(0, "x"), Chunk(1, "y"), Complete()]

    def test_source_failure_emits_failed(self):
        session = self.stream.start(_failing_chunks())
        events = list(session)
        assert events[:2] == [Chunk(0, "a"), Chunk(1, "b")]
        assert events[2] == Failed("backend stream dropped")
        assert len(events) == 3
        assert session.finished
        assert self.stream.active_sessions == 0

    def test_session_removed_when_finished(self):
        session = self.stream.start(Artifact.from_text("abc"))
        assert self.stream.active_sessions == 1
        assert self.stream.get(session.session_id) is session
        list(session)
        assert self.stream.active_sessions == 0
        assert session.finished

    def test_session_iterated_once(self):
        session = self.stream.start(Artifact.from_text("abc"))
        list(session)
        with pytest.raises(RuntimeError, match="already started"):
            list(session)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError, match="chunk_delay must be >= 0"):
            DeliveryStream(chunk_delay=-1)


class TestDeliveryCancellation:
    """Test cancellation semantics."""

    def setup_method(self):
        self.stream = DeliveryStream()

    def test_cancel_mid_stream(self):
        session = self.stream.start(Artifact.from_text("abcdef"))
        events = []
        for event in session:
            events.append(event)
            if isinstance(event, Chunk) and event.index == 2:
                assert self.stream.cancel(session.session_id)

        assert [e.index for e in events if isinstance(e, Chunk)] == [0, 1, 2]
        assert events[-1] == Cancelled()
        assert sum(isinstance(e, (Cancelled, Complete, Failed)) for e in events) == 1
        assert session.finished
        assert self.stream.active_sessions == 0

    def test_cancel_before_start(self):
        session = self.stream.start(Artifact.from_text("abc"))
        assert self.stream.cancel(session.session_id)

        assert session.finished
        assert self.stream.active_sessions == 0
        assert self.stream.get(session.session_id) is None
        assert list(session) == [Cancelled()]

    def test_cancel_landing_after_last_chunk_wins_over_complete(self):
        sessions = []

        def chunks_then_cancel():
            yield "a"
            sessions[0].cancel()

        session = self.stream.start(chunks_then_cancel())
        sessions.append(session)

        assert list(session) == [Chunk(0, "a"), Cancelled()]
        assert self.stream.active_sessions == 0

    def test_cancel_landing_before_next_chunk_suppresses_it(self):
        sessions = []

        def cancel_mid_source():
            yield "a"
            sessions[0].cancel()
            yield "b"

        session = self.stream.start(cancel_mid_source())
        sessions.append(session)

        assert list(session) == [Chunk(0, "a"), Cancelled()]

    def test_cancel_unknown_session(self):
        assert self.stream.cancel("missing") is False

    def test_cancel_after_complete(self):
        session = self.stream.start(Artifact.from_text("abc"))
        list(session)
        assert session.cancel() is False
        assert self.stream.cancel(session.session_id) is False

    def test_cancel_does_not_affect_other_sessions(self):
        first = self.stream.start(Artifact.from_text("abc"))
        second = self.stream.start(Artifact.from_text("xyz"))
        self.stream.cancel(first.session_id)

        assert list(first) == [Cancelled()]
        assert list(second)[-1] == Complete()

    def test_cancel_from_another_thread_is_prompt(self):
        stream = DeliveryStream(chunk_delay=5.0)
        session = stream.start(Artifact.from_text("abcdef"))
        events = []
        first_chunk = threading.Event()

        def consume():
            for event in session:
                events.append(event)
                first_chunk.set()

        consumer = threading.Thread(target=consume)
        consumer.start()
        assert first_chunk.wait(2.0)
        stream.cancel(session.session_id)
        consumer.join(2.0)

        assert not consumer.is_alive()
        assert events == [Chunk(0, "a"), Cancelled()]


class TestDeliveryStreamClose:
    """Test shutting a stream down with sessions still open."""

    def test_close_drops_unconsumed_sessions(self):
        stream = DeliveryStream()
        sessions = [stream.start(Artifact.from_text("abc")) for _ in range(100)]
        assert stream.active_sessions == 100

        stream.close()

        assert stream.active_sessions == 0
        assert all(s.finished and s.cancelled for s in sessions)
        assert list(sessions[0]) == [Cancelled()]

    def test_close_cancels_session_being_read(self):
        stream = DeliveryStream()
        session = stream.start(Artifact.from_text("abc"))
        events = iter(session)
        assert next(events) == Chunk(0, "a")

        stream.close()

        assert list(events) == [Cancelled()]
        assert stream.active_sessions == 0

    def test_close_leaves_finished_sessions_alone(self):
        stream = DeliveryStream()
        session = stream.start(Artifact.from_text("abc"))
        list(session)

        stream.close()

        assert not session.cancelled

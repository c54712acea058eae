"""Tests for the live session state machine — fake camera and classifier."""

import asyncio
import threading

import numpy as np
import pytest

from emotihome.classifier import Classification
from emotihome.emotion_log import EmotionLog
from emotihome.emotions import Emotion
from emotihome.errors import (
    AuthenticationError,
    CaptureUnavailable,
    ClassificationError,
    InvalidState,
    PersistenceError,
)
from emotihome.matching import RuleMatcher
from emotihome.repository import RuleRepository
from emotihome.session import LiveSession, SessionStatus
from emotihome.snooze import SnoozeController
from emotihome.store import MemoryStore


class FakeCapture:
    def __init__(self, fail_open=False, fail_read=False):
        self.fail_open = fail_open
        self.fail_read = fail_read
        self.open_gate = threading.Event()
        self.open_gate.set()
        self.opened = 0
        self.released = 0
        self.is_open = False

    def open(self):
        self.open_gate.wait(timeout=5)
        self.opened += 1
        if self.fail_open:
            raise CaptureUnavailable("no camera")
        self.is_open = True

    def read_frame(self):
        if self.fail_read:
            raise CaptureUnavailable("read failed")
        return np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self):
        self.released += 1
        self.is_open = False


class FakeGateway:
    """Returns queued results; `gate` holds calls in flight until set."""

    def __init__(self, *results):
        self.results = list(results) or [Classification(Emotion.SAD, "test")]
        self.gate = asyncio.Event()
        self.gate.set()
        self.calls = 0

    async def classify(self, frame):
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        await self.gate.wait()
        if isinstance(result, Exception):
            raise result
        return result


def _make(*results, capture=None, store=None, interval=3600.0):
    store = store or MemoryStore()
    repo = RuleRepository(store)
    snooze = SnoozeController(store)
    capture = capture or FakeCapture()
    gateway = FakeGateway(*results)
    session = LiveSession(
        owner="u1",
        capture=capture,
        gateway=gateway,
        emotion_log=EmotionLog(store),
        matcher=RuleMatcher(repo, snooze),
        sample_interval=interval,
    )
    events = {"state": [], "emotion": [], "rules": [], "error": []}
    session.event_emitter.on_state_change(events["state"].append)
    session.event_emitter.on_emotion(events["emotion"].append)
    session.event_emitter.on_rules_fired(events["rules"].append)
    session.event_emitter.on_error(events["error"].append)
    return session, capture, gateway, store, repo, snooze, events


async def _sample(session):
    """Tick once and wait for the classification to be applied."""
    assert session.tick() is True
    await session.pending_request


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_goes_active(self):
        session, capture, *_ , events = _make()
        await session.start()
        assert session.status is SessionStatus.ACTIVE
        assert capture.opened == 1
        assert [(e.previous, e.current) for e in events["state"]] == [
            ("idle", "starting"),
            ("starting", "active"),
        ]
        await session.stop()

    @pytest.mark.asyncio
    async def test_start_twice_acquires_once(self):
        session, capture, *_ , events = _make()
        await session.start()
        await session.start()
        assert capture.opened == 1
        assert sum(1 for e in events["state"] if e.current == "active") == 1
        await session.stop()

    @pytest.mark.asyncio
    async def test_concurrent_start_acquires_once(self):
        session, capture, *_ = _make()
        await asyncio.gather(session.start(), session.start())
        assert capture.opened == 1
        assert session.status is SessionStatus.ACTIVE
        await session.stop()

    @pytest.mark.asyncio
    async def test_capture_unavailable_returns_to_idle(self):
        session, capture, *_ , events = _make(capture=FakeCapture(fail_open=True))
        with pytest.raises(CaptureUnavailable):
            await session.start()
        assert session.status is SessionStatus.IDLE
        assert [e.current for e in events["state"]] == ["starting", "idle"]
        assert events["error"][0].kind == "CaptureUnavailable"

    @pytest.mark.asyncio
    async def test_stop_releases_and_resets(self):
        session, capture, *_ = _make(Classification(Emotion.HAPPY, "model"))
        await session.start()
        await _sample(session)
        assert session.last_emotion is Emotion.HAPPY
        await session.stop()
        assert session.status is SessionStatus.IDLE
        assert capture.released == 1
        assert session.last_emotion is Emotion.NEUTRAL
        assert session.last_source is None

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self):
        session, capture, *_ , events = _make()
        await session.stop()
        assert session.status is SessionStatus.IDLE
        assert capture.released == 0
        assert events["state"] == []

    @pytest.mark.asyncio
    async def test_stop_while_starting(self):
        capture = FakeCapture()
        capture.open_gate.clear()
        session, *_ = _make(capture=capture)

        start_task = asyncio.create_task(session.start())
        await asyncio.sleep(0.01)
        assert session.status is SessionStatus.STARTING

        stop_task = asyncio.create_task(session.stop())
        await asyncio.sleep(0.01)
        assert session.status is SessionStatus.STOPPING

        capture.open_gate.set()
        await asyncio.gather(start_task, stop_task)
        assert session.status is SessionStatus.IDLE
        assert capture.opened == 1
        assert capture.released == 1

    @pytest.mark.asyncio
    async def test_restart_waits_for_interrupted_open(self):
        capture = FakeCapture()
        capture.open_gate.clear()
        session, *_ = _make(capture=capture)

        first_start = asyncio.create_task(session.start())
        await asyncio.sleep(0.01)
        stop_task = asyncio.create_task(session.stop())
        await asyncio.sleep(0.01)

        # Ignored while the first open is still outstanding
        await session.start()
        assert capture.opened == 0

        capture.open_gate.set()
        await asyncio.gather(first_start, stop_task)
        assert capture.opened == 1
        assert capture.released == 1

        await session.start()
        assert session.status is SessionStatus.ACTIVE
        assert capture.opened == 2
        assert capture.released == 1
        assert capture.is_open is True
        assert session.tick() is True
        await session.pending_request
        assert session.last_emotion is Emotion.SAD
        await session.stop()
        assert capture.released == 2

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        session, capture, *_ = _make()
        await session.start()
        await session.stop()
        await session.start()
        assert session.status is SessionStatus.ACTIVE
        assert capture.opened == 2
        await session.stop()

    @pytest.mark.asyncio
    async def test_context_manager(self):
        session, capture, *_ = _make()
        async with session:
            assert session.status is SessionStatus.ACTIVE
        assert session.status is SessionStatus.IDLE
        assert capture.released == 1

    @pytest.mark.asyncio
    async def test_tick_requires_active(self):
        session, *_ = _make()
        with pytest.raises(InvalidState):
            session.tick()

    @pytest.mark.asyncio
    async def test_snapshot(self):
        session, *_ = _make(interval=5.0)
        state = session.snapshot()
        assert state.status is SessionStatus.IDLE
        assert state.last_emotion is Emotion.NEUTRAL
        assert state.pending_request is False
        assert state.sample_interval == 5.0


class TestSampling:
    @pytest.mark.asyncio
    async def test_sample_logs_and_fires_rules(self):
        session, _, _, store, repo, _, events = _make(Classification(Emotion.SAD, "deepface"))
        music = repo.create("u1", "sad", "play_music", "/a.wav")
        repo.create("u1", "sad", "speak", "hi", enabled=False)

        await session.start()
        await _sample(session)

        assert session.last_emotion is Emotion.SAD
        assert session.last_source == "deepface"
        assert session.pending_request is None
        logs = store.select_emotion_logs("u1")
        assert [r["emotion"] for r in logs] == ["sad"]
        assert len(events["rules"]) == 1
        assert events["rules"][0].rules == [music]
        assert events["emotion"][0].source == "deepface"
        await session.stop()

    @pytest.mark.asyncio
    async def test_unknown_three_times_writes_nothing(self):
        unknown = Classification(Emotion.UNKNOWN, "none")
        session, _, gateway, store, *_ , events = _make(unknown, unknown, unknown)
        await session.start()
        for _ in range(3):
            await _sample(session)
        assert gateway.calls == 3
        assert store.select_emotion_logs("u1") == []
        assert session.status is SessionStatus.ACTIVE
        assert session.last_emotion is Emotion.UNKNOWN
        assert events["rules"] == []
        await session.stop()

    @pytest.mark.asyncio
    async def test_in_flight_guard_skips_tick(self):
        session, _, gateway, *_ = _make()
        await session.start()
        gateway.gate.clear()

        assert session.tick() is True
        assert session.tick() is False
        assert session.snapshot().pending_request is True

        task = session.pending_request
        gateway.gate.set()
        await task
        assert gateway.calls == 1
        assert session.tick() is True
        await session.pending_request
        assert gateway.calls == 2
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_discards_in_flight_result(self):
        session, _, gateway, store, *_ , events = _make(Classification(Emotion.ANGRY, "model"))
        await session.start()
        gateway.gate.clear()
        session.tick()
        task = session.pending_request

        await session.stop()
        assert session.pending_request is None

        gateway.gate.set()
        await task
        assert store.select_emotion_logs("u1") == []
        assert session.last_emotion is Emotion.NEUTRAL
        assert session.status is SessionStatus.IDLE
        assert events["emotion"] == []

    @pytest.mark.asyncio
    async def test_classifier_error_keeps_session_active(self):
        session, _, _, store, *_ , events = _make(
            ClassificationError("Backend error: 500"),
            Classification(Emotion.HAPPY, "model"),
        )
        await session.start()
        await _sample(session)
        assert session.status is SessionStatus.ACTIVE
        assert events["error"][0].kind == "ClassificationError"
        assert events["error"][0].auth_failed is False
        assert session.last_emotion is Emotion.NEUTRAL

        await _sample(session)
        assert session.last_emotion is Emotion.HAPPY
        assert len(store.select_emotion_logs("u1")) == 1
        await session.stop()

    @pytest.mark.asyncio
    async def test_auth_error_flagged(self):
        session, *_ , events = _make(AuthenticationError("401"))
        await session.start()
        await _sample(session)
        assert session.status is SessionStatus.ACTIVE
        assert events["error"][0].auth_failed is True
        assert isinstance(session.last_error, AuthenticationError)
        await session.stop()

    @pytest.mark.asyncio
    async def test_frame_read_failure_skips_sample(self):
        session, _, gateway, *_ , events = _make(capture=FakeCapture(fail_read=True))
        await session.start()
        await _sample(session)
        assert gateway.calls == 0
        assert session.pending_request is None
        assert events["error"][0].kind == "CaptureUnavailable"
        assert session.status is SessionStatus.ACTIVE
        await session.stop()

    @pytest.mark.asyncio
    async def test_log_write_failure_is_not_fatal(self):
        store = MemoryStore()

        def broken_insert(record):
            raise PersistenceError("insert failed")

        store.insert_emotion_log = broken_insert
        session, _, _, _, repo, _, events = _make(store=store)
        repo.create("u1", "sad", "play_music", "/a.wav")

        await session.start()
        await _sample(session)
        assert session.status is SessionStatus.ACTIVE
        assert session.last_emotion is Emotion.SAD
        assert len(events["rules"]) == 1
        await session.stop()

    @pytest.mark.asyncio
    async def test_snoozed_logs_but_fires_nothing(self):
        session, _, _, store, repo, snooze, events = _make()
        repo.create("u1", "sad", "play_music", "/a.wav")
        snooze.set_snooze("u1", 30)

        await session.start()
        await _sample(session)
        assert len(store.select_emotion_logs("u1")) == 1
        assert events["rules"] == []
        await session.stop()

    @pytest.mark.asyncio
    async def test_timer_samples_periodically(self):
        session, _, gateway, store, *_ = _make(interval=0.01)
        await session.start()
        await asyncio.sleep(0.2)
        await session.stop()
        assert gateway.calls >= 2
        calls = gateway.calls
        await asyncio.sleep(0.05)
        assert gateway.calls == calls

    @pytest.mark.asyncio
    async def test_log_entries_in_sample_order(self):
        session, _, _, store, *_ = _make(
            Classification(Emotion.SAD, "m"),
            Classification(Emotion.HAPPY, "m"),
            Classification(Emotion.FEAR, "m"),
        )
        await session.start()
        for _ in range(3):
            await _sample(session)
        rows = store.select_emotion_logs("u1")
        assert [r["emotion"] for r in reversed(rows)] == ["sad", "happy", "fear"]
        await session.stop()

    @pytest.mark.asyncio
    async def test_malformed_rule_row_reported(self):
        session, _, _, store, *_ , events = _make()
        store.insert_rule({"user_id": "u1", "emotion": "sad", "action": "dance", "payload": "x"})

        await session.start()
        await _sample(session)
        assert session.status is SessionStatus.ACTIVE
        assert session.pending_request is None
        assert len(store.select_emotion_logs("u1")) == 1
        assert events["rules"] == []
        assert [e.kind for e in events["error"]] == ["ValueError"]
        assert "dance" in events["error"][0].message
        await session.stop()

    @pytest.mark.asyncio
    async def test_timer_survives_unexpected_read_error(self):
        class BrokenReadCapture(FakeCapture):
            def read_frame(self):
                raise RuntimeError("driver fault")

        session, _, gateway, *_ , events = _make(capture=BrokenReadCapture(), interval=0.01)
        await session.start()
        await asyncio.sleep(0.2)
        assert session.status is SessionStatus.ACTIVE
        assert gateway.calls == 0
        assert len(events["error"]) >= 2
        assert {e.kind for e in events["error"]} == {"RuntimeError"}
        await session.stop()

"""Live detection session: samples the camera, classifies, logs and matches rules."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from . import config
from .capture import WebcamCapture
from .classifier import ClassificationGateway
from .emotion_log import EmotionLog
from .emotions import Emotion
from .errors import AuthenticationError, CaptureUnavailable, InvalidState, PersistenceError
from .events import ErrorEvent, EmotionEvent, EventEmitter, RulesFiredEvent, StateChangeEvent
from .matching import RuleMatcher


class SessionStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot of a session."""

    status: SessionStatus
    last_emotion: Emotion
    last_source: str | None
    pending_request: bool
    sample_interval: float


class LiveSession:
    """State machine for one user's live detection session.

    Idle -> Starting -> Active -> Stopping -> Idle

    Runs on a single asyncio event loop. Blocking collaborators (camera open,
    frame reads, the analysis HTTP call, store reads and writes) run in worker
    threads, so each of them is a suspension point and nothing else needs a
    lock. stop() during Starting waits in Stopping until the camera open
    returns and then releases it, so a new start() never overlaps it.

    Every `sample_interval` seconds the timer calls tick(). At most one
    classification is in flight: a tick that finds `pending_request` set is
    skipped, so samples are applied and logged strictly in order.

    stop() bumps the session epoch; a classification that resolves after
    that belongs to an older epoch and is dropped without touching state.
    Failed samples (classifier, auth, camera read, store, malformed rules) are
    reported on the emitter's error channel and never stop the session.
    """

    def __init__(
        self,
        owner: str,
        capture: WebcamCapture | Any,
        gateway: ClassificationGateway | Any,
        emotion_log: EmotionLog,
        matcher: RuleMatcher,
        event_emitter: EventEmitter | None = None,
        sample_interval: float = config.SAMPLE_INTERVAL,
    ) -> None:
        self.owner = owner
        self._capture = capture
        self._gateway = gateway
        self._log = emotion_log
        self._matcher = matcher
        self._emitter = event_emitter or EventEmitter()
        self._sample_interval = sample_interval

        self._status = SessionStatus.IDLE
        self._epoch = 0
        self._timer: asyncio.Task | None = None
        self._opening: asyncio.Future | None = None
        self.pending_request: asyncio.Task | None = None
        self.last_emotion = Emotion(config.DEFAULT_EMOTION)
        self.last_source: str | None = None
        self.last_error: Exception | None = None

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def event_emitter(self) -> EventEmitter:
        """Access the event emitter to register callbacks."""
        return self._emitter

    def snapshot(self) -> SessionState:
        return SessionState(
            status=self._status,
            last_emotion=self.last_emotion,
            last_source=self.last_source,
            pending_request=self.pending_request is not None,
            sample_interval=self._sample_interval,
        )

    # --- lifecycle ---

    async def start(self) -> None:
        """Acquire the camera and begin sampling. No-op unless Idle.

        Raises CaptureUnavailable (and returns to Idle) if the camera
        cannot be opened.
        """
        if self._status is not SessionStatus.IDLE:
            print(f"[SESSION] Already {self._status.value}, start ignored")
            return

        self._set_status(SessionStatus.STARTING)
        epoch = self._epoch
        self._opening = asyncio.ensure_future(asyncio.to_thread(self._capture.open))
        try:
            await asyncio.shield(self._opening)
        except CaptureUnavailable as e:
            if epoch != self._epoch:
                # stop() owns the outcome of this open
                return
            self._opening = None
            self._report_error(e)
            self._set_status(SessionStatus.IDLE)
            raise

        if epoch != self._epoch:
            # stop() ran while the camera was opening and releases it
            return

        self._opening = None
        self._set_status(SessionStatus.ACTIVE)
        self._timer = asyncio.create_task(self._run_timer(epoch))
        print(f"[SESSION] Sampling every {self._sample_interval}s")

    async def stop(self) -> None:
        """Stop sampling and release the camera. No-op when Idle."""
        if self._status not in (SessionStatus.ACTIVE, SessionStatus.STARTING):
            return

        was_starting = self._status is SessionStatus.STARTING
        self._set_status(SessionStatus.STOPPING)
        self._epoch += 1

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.pending_request is not None:
            print("[SESSION] Discarding in-flight classification")
            self.pending_request = None

        if was_starting:
            await self._finish_opening()
        else:
            await asyncio.to_thread(self._capture.release)

        self.last_emotion = Emotion(config.DEFAULT_EMOTION)
        self.last_source = None
        self._set_status(SessionStatus.IDLE)

    async def _finish_opening(self) -> None:
        """Wait out a camera open that stop() interrupted, then release it."""
        opening, self._opening = self._opening, None
        if opening is None:
            return
        print("[SESSION] Waiting for camera open to finish")
        try:
            await asyncio.shield(opening)
        except Exception as e:
            print(f"[SESSION] Camera open failed after stop: {e}")
            return
        await asyncio.to_thread(self._capture.release)

    async def __aenter__(self) -> LiveSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # --- sampling ---

    async def _run_timer(self, epoch: int) -> None:
        while epoch == self._epoch:
            await asyncio.sleep(self._sample_interval)
            if epoch != self._epoch or self._status is not SessionStatus.ACTIVE:
                return
            try:
                self.tick()
            except Exception as e:
                self._report_error(e)

    def tick(self) -> bool:
        """Take one sample. Returns True if a sample was started.

        Skipped (False) while the previous sample is still in flight. Frame
        read and classification both happen in the sample task.
        """
        if self._status is not SessionStatus.ACTIVE:
            raise InvalidState(f"Cannot sample while {self._status.value}")
        if self.pending_request is not None:
            print("[SESSION] Previous sample still in flight, tick skipped")
            return False

        self.pending_request = asyncio.create_task(self._sample(self._epoch))
        return True

    async def _sample(self, epoch: int) -> None:
        try:
            try:
                frame = await asyncio.to_thread(self._capture.read_frame)
                result = await self._gateway.classify(frame)
            except Exception as e:
                if epoch == self._epoch:
                    self._report_error(e)
                else:
                    print(f"[SESSION] Late failure after stop ignored: {type(e).__name__}: {e}")
                return

            if epoch != self._epoch or self._status is not SessionStatus.ACTIVE:
                print(f"[SESSION] Session stopped, discarding late result ({result.emotion.value})")
                return

            self.last_emotion = result.emotion
            self.last_source = result.source
            self._emitter.emit_emotion(EmotionEvent(
                timestamp=time.time(),
                owner=self.owner,
                emotion=result.emotion.value,
                source=result.source,
            ))

            if result.emotion is Emotion.UNKNOWN:
                print("[SESSION] No emotion detected")
                return

            await self._log_and_match(result.emotion, epoch)
        finally:
            if epoch == self._epoch:
                self.pending_request = None

    async def _log_and_match(self, emotion: Emotion, epoch: int) -> None:
        # A failed log write is only reported on the console; the sample
        # still counts and rule matching still runs.
        try:
            await asyncio.to_thread(self._log.append, self.owner, emotion)
        except PersistenceError as e:
            print(f"[SESSION] Error saving emotion log: {e}")

        if epoch != self._epoch:
            return

        try:
            fired = await asyncio.to_thread(self._matcher.evaluate, self.owner, emotion)
        except Exception as e:
            if epoch == self._epoch:
                self._report_error(e)
            return

        if fired and epoch == self._epoch:
            self._emitter.emit_rules_fired(RulesFiredEvent(
                timestamp=time.time(),
                owner=self.owner,
                emotion=emotion.value,
                rules=fired,
            ))

    # --- helpers ---

    def _set_status(self, status: SessionStatus) -> None:
        previous = self._status
        if previous is status:
            return
        self._status = status
        print(f"[SESSION] {previous.value} -> {status.value}")
        self._emitter.emit_state_change(StateChangeEvent(
            timestamp=time.time(),
            owner=self.owner,
            previous=previous.value,
            current=status.value,
        ))

    def _report_error(self, error: Exception) -> None:
        self.last_error = error
        kind = type(error).__name__
        print(f"[SESSION] {kind}: {error}")
        self._emitter.emit_error(ErrorEvent(
            timestamp=time.time(),
            owner=self.owner,
            kind=kind,
            message=str(error),
            auth_failed=isinstance(error, AuthenticationError),
        ))

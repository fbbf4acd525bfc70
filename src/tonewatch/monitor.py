"""Chunked record -> transcribe -> classify -> notify loop."""

from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import replace
from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Optional

from .classifier import DEFAULT_QUESTION, ToneClassifier
from .events import CallbackQueue
from .models import ClassificationResult, FlaggedTranscript, MonitorState
from .notifier import NotificationRequest, Notifier, format_alert_body
from .permissions import PermissionBroker
from .recorder import ChunkCallback
from .storage import DEFAULT_CHUNK_PREFIX, cleanup_chunks, remove_chunk
from .transcriber import Transcriber, TranscriptionTask

logger = logging.getLogger("tonewatch")

UNAVAILABLE_MESSAGE = "Tone classifier is unavailable."
ALERT_TITLE = "Disagreeable tone detected"

RecorderFactory = Callable[[ChunkCallback], Any]
StateListener = Callable[[MonitorState], None]


class Phase(enum.Enum):
    DISABLED = "disabled"
    STARTING = "starting"
    RUNNING = "running"


class ToneMonitor:
    """Owns the monitor state and drives the chunk loop.

    Every public method and every completion handler runs on the thread that
    drains ``context``. Recorder, transcriber, classifier, permission and
    notification calls happen on worker threads and report back through it.
    """

    def __init__(
        self,
        context: CallbackQueue,
        recorder_factory: RecorderFactory,
        transcriber: Transcriber,
        classifier: ToneClassifier,
        notifier: Notifier,
        permissions: PermissionBroker,
        chunk_dir: str,
        chunk_prefix: str = DEFAULT_CHUNK_PREFIX,
        question_provider: Optional[Callable[[], str]] = None,
        cooldown_seconds: float = 60.0,
        notification_title: str = ALERT_TITLE,
        notification_sound: bool = True,
        flagged_limit: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._context = context
        self._recorder_factory = recorder_factory
        self._transcriber = transcriber
        self._classifier = classifier
        self._notifier = notifier
        self._permissions = permissions
        self._chunk_dir = chunk_dir
        self._chunk_prefix = chunk_prefix
        self._question_provider = question_provider or (lambda: DEFAULT_QUESTION)
        self._cooldown_seconds = cooldown_seconds
        self._notification_title = notification_title
        self._notification_sound = notification_sound
        self._flagged_limit = flagged_limit
        self._clock = clock

        self._state = MonitorState()
        self._phase = Phase.DISABLED
        self._session = 0
        self._recorder = None
        self._transcription: Optional[TranscriptionTask] = None
        self._listeners: List[StateListener] = []

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def state(self) -> MonitorState:
        return replace(self._state, flagged=list(self._state.flagged))

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def toggle(self) -> None:
        logger.info("Toggle requested. phase=%s", self._phase.value)
        if self._phase is Phase.STARTING:
            logger.info("Start already in progress; toggle ignored")
        elif self._phase is Phase.RUNNING:
            self.stop()
        else:
            self.start()

    def start(self) -> None:
        if self._phase is not Phase.DISABLED:
            return
        self._phase = Phase.STARTING
        logger.info("Starting tone monitor; requesting permissions")
        self._context.background(self._acquire_permissions, on_done=self._on_permissions)

    def stop(self) -> None:
        logger.info("Stopping tone monitor")
        self._session += 1
        self._phase = Phase.DISABLED
        self._state.enabled = False

        if self._transcription is not None:
            self._transcription.cancel()
            self._transcription = None
        recorder, self._recorder = self._recorder, None
        if recorder is not None:
            recorder.stop()
        cleanup_chunks(self._chunk_dir, self._chunk_prefix)

        logger.info("Tone monitor disabled")
        self._publish()

    def clear_flagged(self) -> None:
        self._state.flagged.clear()
        self._publish()

    def _acquire_permissions(self) -> bool:
        if not self._permissions.request():
            return False
        authorized = self._notifier.request_authorization()
        logger.info("Notification authorization: %s", authorized)
        return True

    def _on_permissions(self, granted: Optional[bool], error: Optional[BaseException]) -> None:
        if self._phase is not Phase.STARTING:
            return
        if error is not None:
            logger.warning("Permission request failed: %s", error)
        if error is not None or not granted:
            logger.info("Permissions denied. Aborting start.")
            self._phase = Phase.DISABLED
            self._publish()
            return

        self._session += 1
        self._state.live_text = ""
        self._state.tone_verdict = None
        self._state.disagreeable_reason = None
        self._state.status_message = None
        self._state.enabled = True
        self._phase = Phase.RUNNING
        logger.info("State reset; starting session %s", self._session)
        self._start_new_chunk()
        self._publish()

    def _start_new_chunk(self) -> None:
        if self._recorder is None:
            session = self._session
            self._recorder = self._recorder_factory(
                lambda path, success: self._context.post(
                    self._on_chunk_finished, session, path, success
                )
            )
        path = self._recorder.start_new_chunk()
        logger.debug("Recording started: %s", os.path.basename(path or ""))

    def _on_chunk_finished(self, session: int, path: str, success: bool) -> None:
        logger.info("Recorder did finish. success=%s", success)
        if session != self._session or not self._state.enabled:
            remove_chunk(path)
            return
        if success:
            self._recognize_chunk(path)
            return
        remove_chunk(path)
        self._start_new_chunk()

    def _recognize_chunk(self, path: str) -> None:
        logger.info("Starting recognition for chunk: %s", os.path.basename(path))
        if self._transcription is not None:
            self._transcription.cancel()
        task = TranscriptionTask(path)
        self._transcription = task
        self._context.background(
            self._transcriber.transcribe,
            path,
            task,
            on_done=partial(self._on_transcribed, task),
        )

    def _on_transcribed(
        self,
        task: TranscriptionTask,
        text: Optional[str],
        error: Optional[BaseException],
    ) -> None:
        if self._transcription is task:
            self._transcription = None
        if task.cancelled:
            logger.debug("Dropping cancelled transcription for %s", os.path.basename(task.audio_path))
            remove_chunk(task.audio_path)
            return

        if error is not None:
            logger.warning("Chunk recognition error: %s", error)
            text = ""
        text = (text or "").strip()
        logger.info("Chunk recognition result: %s chars", len(text))

        self._state.live_text = text
        self._evaluate_tone(text)
        remove_chunk(task.audio_path)
        if self._state.enabled:
            self._start_new_chunk()
        self._publish()

    def _evaluate_tone(self, text: str) -> None:
        if not text:
            self._state.tone_verdict = None
            self._state.disagreeable_reason = None
            logger.info("No text to evaluate. Indicators cleared")
            return

        question = self._question_provider()
        self._context.background(
            self._classifier.classify,
            text,
            question,
            on_done=partial(self._on_classified, self._session, text, time.monotonic()),
        )

    def _on_classified(
        self,
        session: int,
        text: str,
        started: float,
        result: Optional[ClassificationResult],
        error: Optional[BaseException],
    ) -> None:
        if session != self._session or not self._state.enabled:
            logger.debug("Discarding classification for a finished session")
            return
        if error is not None or result is None:
            self._fail_closed(error)
            return

        self._state.tone_verdict = result.agreeable
        self._state.disagreeable_reason = None if result.agreeable else result.reason
        logger.info(
            "Agreeableness -> %s. Reason=%s for %s chars. Classification took %.3fs",
            "agreeable" if result.agreeable else "not agreeable",
            result.reason or "<none>",
            len(text),
            time.monotonic() - started,
        )
        if not result.agreeable:
            self._flag(text, result.reason)
            self._maybe_notify(result.reason, text)
        self._publish()

    def _fail_closed(self, error: Optional[BaseException]) -> None:
        message = str(error).strip() if error is not None else ""
        self._state.tone_verdict = None
        self._state.disagreeable_reason = None
        self._state.status_message = message or UNAVAILABLE_MESSAGE
        logger.warning("Classification unavailable: %s. Monitor disabled.", self._state.status_message)
        self.stop()

    def _flag(self, text: str, reason: Optional[str]) -> None:
        self._state.flagged.append(
            FlaggedTranscript(timestamp=self._clock(), text=text, reason=reason)
        )
        if len(self._state.flagged) > self._flagged_limit:
            del self._state.flagged[: -self._flagged_limit]

    def _maybe_notify(self, reason: Optional[str], text: str) -> None:
        now = self._clock()
        last = self._state.last_notified_at
        if last is not None:
            elapsed = (now - last).total_seconds()
            if elapsed < self._cooldown_seconds:
                logger.info(
                    "Notification suppressed due to cooldown. Remaining=%.1fs",
                    self._cooldown_seconds - elapsed,
                )
                return

        self._state.last_notified_at = now
        request = NotificationRequest(
            title=self._notification_title,
            body=format_alert_body(reason, text),
            sound=self._notification_sound,
        )
        logger.info("Sending notification (cooldown satisfied)")
        self._context.background(self._notifier.deliver, request)

    def _publish(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")

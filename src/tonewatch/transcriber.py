"""Transcription with Faster-Whisper."""

from __future__ import annotations

import logging
import threading
from typing import Optional

logger = logging.getLogger("tonewatch")


class TranscriptionTask:
    """Handle for one in-flight chunk transcription."""

    def __init__(self, audio_path: str) -> None:
        self.audio_path = audio_path
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class Transcriber:
    def __init__(
        self,
        model_name: str = "small",
        language: str | None = "en",
        device: str | None = None,
        compute_type: str | None = None,
    ) -> None:
        self.model_name = model_name
        self.language = language
        self.device = device
        self.compute_type = compute_type
        self._model = None
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        try:
            import faster_whisper  # noqa: F401
        except Exception as exc:  # pragma: no cover - optional dependency
            logger.warning("faster-whisper unavailable: %s", exc)
            return False
        return True

    def _load_model(self):
        try:
            from faster_whisper import WhisperModel
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "faster-whisper is required for transcription."
            ) from exc

        kwargs = {}
        if self.device:
            kwargs["device"] = self.device
        if self.compute_type:
            kwargs["compute_type"] = self.compute_type
        logger.info("Loading Whisper model %s", self.model_name)
        return WhisperModel(self.model_name, **kwargs)

    def transcribe(self, audio_path: str, task: Optional[TranscriptionTask] = None) -> str:
        with self._lock:
            if self._model is None:
                self._model = self._load_model()
            model = self._model

        segments, _info = model.transcribe(audio_path, language=self.language)
        parts = []
        for seg in segments:
            if task is not None and task.cancelled:
                logger.debug("Transcription cancelled mid-chunk")
                break
            text = seg.text.strip()
            if text:
                parts.append(text)
        return " ".join(parts)

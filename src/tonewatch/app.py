"""Application wiring and lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .classifier import ToneClassifier
from .config import Config
from .events import CallbackQueue
from .monitor import Phase, ToneMonitor
from .notifier import Notifier
from .permissions import PermissionBroker
from .preferences import PromptPreferences
from .recorder import ChunkRecorder
from .storage import cleanup_chunks, resolve_chunk_dir
from .transcriber import Transcriber

logger = logging.getLogger("tonewatch")


@dataclass
class App:
    config: Config
    context: CallbackQueue
    preferences: PromptPreferences
    classifier: ToneClassifier
    monitor: ToneMonitor


def build_classifier(config: Config) -> ToneClassifier:
    return ToneClassifier(
        model=config.classifier.model,
        host=config.classifier.host,
        enabled=config.classifier.enabled,
        temperature=config.classifier.temperature,
        max_tokens=config.classifier.max_tokens,
    )


def build_app(config: Config, context: CallbackQueue | None = None) -> App:
    context = context or CallbackQueue()
    chunk_dir = resolve_chunk_dir(config.chunks.directory)
    preferences = PromptPreferences(config.preferences_path)
    classifier = build_classifier(config)
    transcriber = Transcriber(
        model_name=config.transcription.whisper_model,
        language=config.transcription.language,
        device=config.transcription.device,
        compute_type=config.transcription.compute_type,
    )

    def _recorder_factory(on_chunk_finished):
        return ChunkRecorder(
            chunk_dir,
            on_chunk_finished,
            chunk_seconds=config.chunks.duration_seconds,
            prefix=config.chunks.prefix,
            sample_rate_hz=config.audio.sample_rate_hz,
            channels=config.audio.channels,
            device_name=config.audio.device_name,
        )

    monitor = ToneMonitor(
        context,
        _recorder_factory,
        transcriber,
        classifier,
        Notifier(),
        PermissionBroker(transcriber, device_name=config.audio.device_name),
        chunk_dir,
        chunk_prefix=config.chunks.prefix,
        question_provider=preferences.get_prompt,
        cooldown_seconds=config.notifications.cooldown_seconds,
        notification_title=config.notifications.title,
        notification_sound=config.notifications.sound,
    )
    return App(config, context, preferences, classifier, monitor)


def startup(config: Config) -> int:
    return cleanup_chunks(config.chunks.directory, config.chunks.prefix)


def shutdown(app: App) -> int:
    if app.monitor.phase is not Phase.DISABLED:
        app.monitor.stop()
    removed = cleanup_chunks(app.config.chunks.directory, app.config.chunks.prefix)
    logger.info("Shutdown complete")
    return removed

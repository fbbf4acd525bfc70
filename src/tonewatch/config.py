"""Configuration handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import yaml


@dataclass
class AudioConfig:
    sample_rate_hz: int = 16000
    channels: int = 1
    device_name: Optional[str] = None


@dataclass
class ChunkConfig:
    duration_seconds: int = 60
    directory: Optional[str] = None
    prefix: str = "tone_chunk_"


@dataclass
class TranscriptionConfig:
    whisper_model: str = "small"
    language: Optional[str] = "en"
    device: Optional[str] = None
    compute_type: Optional[str] = None


@dataclass
class ClassifierConfig:
    enabled: bool = True
    model: str = "llama3.2"
    host: str = "http://localhost:11434"
    temperature: float = 0.0
    max_tokens: int = 48


@dataclass
class NotificationConfig:
    cooldown_seconds: float = 60.0
    title: str = "Disagreeable tone detected"
    sound: bool = True


@dataclass
class Config:
    log_dir: str = "logs"
    preferences_path: str = "tonewatch_prefs.yml"
    audio: AudioConfig = field(default_factory=AudioConfig)
    chunks: ChunkConfig = field(default_factory=ChunkConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    return Config(
        log_dir=data.get("log_dir", "logs"),
        preferences_path=data.get("preferences_path", "tonewatch_prefs.yml"),
        audio=AudioConfig(**data.get("audio", {})),
        chunks=ChunkConfig(**data.get("chunks", {})),
        transcription=TranscriptionConfig(**data.get("transcription", {})),
        classifier=ClassifierConfig(**data.get("classifier", {})),
        notifications=NotificationConfig(**data.get("notifications", {})),
    )


def save_config(path: str, config: Config) -> None:
    data = {
        "log_dir": config.log_dir,
        "preferences_path": config.preferences_path,
        "audio": {
            "sample_rate_hz": config.audio.sample_rate_hz,
            "channels": config.audio.channels,
            "device_name": config.audio.device_name,
        },
        "chunks": {
            "duration_seconds": config.chunks.duration_seconds,
            "directory": config.chunks.directory,
            "prefix": config.chunks.prefix,
        },
        "transcription": {
            "whisper_model": config.transcription.whisper_model,
            "language": config.transcription.language,
            "device": config.transcription.device,
            "compute_type": config.transcription.compute_type,
        },
        "classifier": {
            "enabled": config.classifier.enabled,
            "model": config.classifier.model,
            "host": config.classifier.host,
            "temperature": config.classifier.temperature,
            "max_tokens": config.classifier.max_tokens,
        },
        "notifications": {
            "cooldown_seconds": config.notifications.cooldown_seconds,
            "title": config.notifications.title,
            "sound": config.notifications.sound,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)

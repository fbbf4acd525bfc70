"""Data models for Tonewatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List


@dataclass(frozen=True)
class ClassificationResult:
    agreeable: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class FlaggedTranscript:
    timestamp: datetime
    text: str
    reason: Optional[str] = None


@dataclass
class MonitorState:
    enabled: bool = False
    live_text: str = ""
    tone_verdict: Optional[bool] = None
    disagreeable_reason: Optional[str] = None
    status_message: Optional[str] = None
    last_notified_at: Optional[datetime] = None
    flagged: List[FlaggedTranscript] = field(default_factory=list)

"""Desktop notifications."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("tonewatch")

EXCERPT_LIMIT = 120


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    sound: bool = True
    identifier: str = field(default_factory=lambda: uuid.uuid4().hex)


def format_alert_body(reason: Optional[str], text: str, limit: int = EXCERPT_LIMIT) -> str:
    sample = text[:limit]
    if reason:
        return f'{reason} — "{sample}"'
    return f'"{sample}"'


class Notifier:
    def __init__(self, app_name: str = "Tonewatch", timeout: int = 10, backend: Any = None) -> None:
        self.app_name = app_name
        self.timeout = timeout
        self._backend = backend

    def _get_backend(self):
        if self._backend is None:
            from plyer import notification

            self._backend = notification
        return self._backend

    def request_authorization(self) -> bool:
        try:
            self._get_backend()
        except Exception as exc:
            logger.warning("Notifications unavailable: %s", exc)
            return False
        return True

    def deliver(self, request: NotificationRequest) -> bool:
        """Fire-and-forget delivery; failures are logged, never raised."""
        try:
            self._get_backend().notify(
                title=request.title,
                message=request.body,
                app_name=self.app_name,
                timeout=self.timeout,
            )
        except Exception as exc:
            logger.warning("Notification %s failed: %s", request.identifier, exc)
            return False
        if request.sound:
            # plyer has no sound option; the platform default applies.
            logger.debug("Notification %s sent with default sound", request.identifier)
        logger.info("Notification scheduled: %s", request.identifier)
        return True

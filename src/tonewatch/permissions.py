"""Microphone and transcription readiness checks."""

from __future__ import annotations

import logging
from typing import Optional

from .recorder import find_input_device
from .transcriber import Transcriber

logger = logging.getLogger("tonewatch")


class PermissionBroker:
    def __init__(self, transcriber: Transcriber, device_name: Optional[str] = None) -> None:
        self.transcriber = transcriber
        self.device_name = device_name

    def microphone_granted(self) -> bool:
        try:
            device = find_input_device(self.device_name)
        except RuntimeError as exc:
            logger.warning("Microphone unavailable: %s", exc)
            return False
        logger.debug("Using input device: %s", device.get("name", "?"))
        return True

    def request(self) -> bool:
        mic = self.microphone_granted()
        speech = self.transcriber.is_available()
        granted = mic and speech
        logger.info("Permissions result: speech=%s mic=%s granted=%s", speech, mic, granted)
        return granted

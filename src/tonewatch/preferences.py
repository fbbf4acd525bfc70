"""Persisted classification prompt."""

from __future__ import annotations

import logging
import os
from typing import Callable, List

import yaml

logger = logging.getLogger("tonewatch")

PROMPT_KEY = "agreeable_prompt"

DEFAULT_PROMPT = (
    "Is the following text agreeable in tone? Consider politeness, empathy, "
    "non-aggressiveness and non-confrontational tone. Consider the context of a "
    "work environment, bringing up potential issues is ok, but the tone should "
    "not be dismissive or confrontational, but rather constructive and respectful."
)

PromptListener = Callable[[str], None]


class PromptPreferences:
    def __init__(self, path: str) -> None:
        self.path = path
        self._listeners: List[PromptListener] = []

    def _load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)

    def get_prompt(self) -> str:
        stored = self._load().get(PROMPT_KEY)
        if isinstance(stored, str) and stored.strip():
            return stored
        return DEFAULT_PROMPT

    def set_prompt(self, value: str) -> None:
        trimmed = (value or "").strip()
        data = self._load()
        if trimmed:
            data[PROMPT_KEY] = trimmed
        else:
            data.pop(PROMPT_KEY, None)
        self._save(data)
        self._broadcast()

    def reset_prompt(self) -> None:
        data = self._load()
        data.pop(PROMPT_KEY, None)
        self._save(data)
        self._broadcast()

    def subscribe(self, listener: PromptListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _broadcast(self) -> None:
        prompt = self.get_prompt()
        logger.info("Classification prompt changed (%s chars)", len(prompt))
        for listener in list(self._listeners):
            listener(prompt)

"""Tone classification against a local Ollama model."""

from __future__ import annotations

import enum
import logging
import re
from typing import Any, Optional

from .models import ClassificationResult

logger = logging.getLogger("tonewatch")

DEFAULT_QUESTION = (
    "Is the following text agreeable in tone? Consider politeness, empathy, "
    "non-aggressiveness and non-confrontational tone."
)

REASON_SEPARATORS = ("—", "-", ":")

_YES = re.compile(r"^yes\b", re.IGNORECASE)


class UnavailableReason(enum.Enum):
    DEVICE_NOT_ELIGIBLE = "Tone classifier is not available on this machine."
    FEATURE_DISABLED = "Tone classifier is disabled in the configuration."
    MODEL_NOT_READY = "Tone model is not ready. Please try again later."
    UNPARSEABLE_RESPONSE = "Tone classifier returned an unexpected response."


class ClassifierUnavailable(Exception):
    def __init__(self, reason: UnavailableReason, detail: Optional[str] = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)


class UnparseableResponse(ClassifierUnavailable):
    def __init__(self, reply: str) -> None:
        self.reply = reply
        super().__init__(UnavailableReason.UNPARSEABLE_RESPONSE)


def build_prompt(question: str, text: str) -> str:
    return (
        "You are a concise classifier. Respond in one of two formats only:\n"
        "1) Yes\n"
        "2) No — <one short sentence explaining why>\n"
        f"Question: {question}\n"
        f"Text: {text}\n"
        "Answer:"
    )


def parse_reply(reply: str) -> ClassificationResult:
    cleaned = (reply or "").strip()
    if _YES.match(cleaned):
        return ClassificationResult(agreeable=True)
    if not cleaned.lower().startswith("no"):
        raise UnparseableResponse(cleaned)

    positions = [cleaned.find(sep) for sep in REASON_SEPARATORS]
    positions = [pos for pos in positions if pos >= 0]
    if positions:
        reason = cleaned[min(positions) + 1:].strip()
    else:
        reason = cleaned[2:].strip()
    return ClassificationResult(agreeable=False, reason=reason or None)


def _model_names(listing: Any) -> list[str]:
    models = listing.get("models", []) if listing is not None else []
    names = []
    for entry in models or []:
        name = entry.get("model") or entry.get("name")
        if name:
            names.append(str(name))
    return names


def _model_matches(wanted: str, available: str) -> bool:
    if wanted == available:
        return True
    if ":" not in wanted:
        return available.split(":", 1)[0] == wanted and available.endswith(":latest")
    return False


class ToneClassifier:
    def __init__(
        self,
        model: str = "llama3.2",
        host: str = "http://localhost:11434",
        enabled: bool = True,
        temperature: float = 0.0,
        max_tokens: int = 48,
        client: Any = None,
    ) -> None:
        self.model = model
        self.host = host
        self.enabled = enabled
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client
        try:
            import ollama
        except Exception as exc:
            raise ClassifierUnavailable(
                UnavailableReason.DEVICE_NOT_ELIGIBLE,
                "The ollama package is not installed.",
            ) from exc
        self._client = ollama.Client(host=self.host)
        return self._client

    def check_availability(self):
        if not self.enabled:
            raise ClassifierUnavailable(UnavailableReason.FEATURE_DISABLED)
        client = self._get_client()
        try:
            listing = client.list()
        except Exception as exc:
            raise ClassifierUnavailable(
                UnavailableReason.DEVICE_NOT_ELIGIBLE,
                f"Ollama is not reachable at {self.host}.",
            ) from exc
        names = _model_names(listing)
        if not any(_model_matches(self.model, name) for name in names):
            raise ClassifierUnavailable(
                UnavailableReason.MODEL_NOT_READY,
                f"Model '{self.model}' is not ready. Pull it with 'ollama pull {self.model}'.",
            )
        return client

    def classify(self, text: str, question: str = DEFAULT_QUESTION) -> ClassificationResult:
        """Ask the model whether ``text`` satisfies ``question``.

        Raises ClassifierUnavailable when the model cannot run, and
        UnparseableResponse when the reply is neither "Yes" nor "No - reason".
        """
        client = self.check_availability()
        try:
            response = client.generate(
                model=self.model,
                prompt=build_prompt(question, text),
                options={"temperature": self.temperature, "num_predict": self.max_tokens},
            )
        except Exception as exc:
            raise ClassifierUnavailable(
                UnavailableReason.MODEL_NOT_READY,
                f"Tone model '{self.model}' failed to respond: {exc}",
            ) from exc

        reply = str(response.get("response", "") or "").strip()
        logger.debug("Classifier reply: %r", reply)
        return parse_reply(reply)

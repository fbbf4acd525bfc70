"""Audio recording utilities."""

from __future__ import annotations

import logging
import os
import threading
import wave
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Callable

from .storage import DEFAULT_CHUNK_PREFIX, build_chunk_path

logger = logging.getLogger("tonewatch")

ChunkCallback = Callable[[str, bool], None]
StreamFactory = Callable[..., Any]


def list_input_devices() -> List[Dict[str, Any]]:
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError("sounddevice is required for device detection.") from exc

    devices = sd.query_devices()
    return [d for d in devices if d.get("max_input_channels", 0) > 0]


def select_preferred_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not candidates:
        raise RuntimeError("No input devices found.")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
    return candidates[0]


def find_input_device(prefer_name: Optional[str] = None) -> dict:
    return select_preferred_device(list_input_devices(), prefer_name=prefer_name)


def open_input_stream(
    sample_rate_hz: int,
    channels: int,
    device_name: Optional[str],
    callback: Callable[..., None],
):
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise RuntimeError("sounddevice is required for recording.") from exc

    device = find_input_device(device_name)
    return sd.InputStream(
        samplerate=sample_rate_hz,
        channels=channels,
        dtype="int16",
        device=device.get("index"),
        callback=callback,
    )


@dataclass
class _Chunk:
    path: str
    stop_event: threading.Event = field(default_factory=threading.Event)
    frames_written: int = 0
    finished: bool = False
    thread: Optional[threading.Thread] = None


class ChunkRecorder:
    """Records fixed-duration WAV chunks, one at a time.

    ``on_chunk_finished(path, success)`` fires exactly once per chunk, from
    the recording thread on completion or from the caller on a start failure.
    """

    def __init__(
        self,
        output_dir: str,
        on_chunk_finished: ChunkCallback,
        chunk_seconds: float = 60,
        prefix: str = DEFAULT_CHUNK_PREFIX,
        sample_rate_hz: int = 16000,
        channels: int = 1,
        device_name: Optional[str] = None,
        stream_factory: StreamFactory = open_input_stream,
    ) -> None:
        self.output_dir = output_dir
        self.on_chunk_finished = on_chunk_finished
        self.chunk_seconds = chunk_seconds
        self.prefix = prefix
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self.device_name = device_name
        self._stream_factory = stream_factory
        self._lock = threading.Lock()
        self._active: Optional[_Chunk] = None

    @property
    def is_recording(self) -> bool:
        return self._active is not None

    def start_new_chunk(self) -> str:
        self.stop()
        chunk = _Chunk(path=build_chunk_path(self.output_dir, self.prefix))

        handle = None
        try:
            handle = wave.open(chunk.path, "wb")
            handle.setnchannels(self.channels)
            handle.setsampwidth(2)
            handle.setframerate(self.sample_rate_hz)
            stream = self._stream_factory(
                self.sample_rate_hz,
                self.channels,
                self.device_name,
                self._make_callback(chunk, handle),
            )
            stream.start()
        except Exception as exc:
            logger.warning("Failed to start chunk %s: %s", os.path.basename(chunk.path), exc)
            if handle is not None:
                handle.close()
            self._finish(chunk, False)
            return chunk.path

        chunk.thread = threading.Thread(
            target=self._run, args=(chunk, stream, handle), daemon=True
        )
        with self._lock:
            self._active = chunk
        chunk.thread.start()
        logger.debug("Recording chunk %s for %ss", os.path.basename(chunk.path), self.chunk_seconds)
        return chunk.path

    def stop(self) -> None:
        with self._lock:
            chunk, self._active = self._active, None
        if chunk is None:
            return
        chunk.stop_event.set()
        if chunk.thread is not None and chunk.thread is not threading.current_thread():
            chunk.thread.join()

    def _make_callback(self, chunk: _Chunk, handle) -> Callable[..., None]:
        try:
            import numpy as np
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise RuntimeError("numpy is required for recording.") from exc

        def _callback(indata, frames, _time, status):
            if status:
                logger.debug("Recorder status: %s", status)
            if chunk.stop_event.is_set():
                return
            if indata.dtype != np.int16:
                indata = indata.astype(np.int16)
            handle.writeframes(indata.tobytes())
            chunk.frames_written += frames

        return _callback

    def _run(self, chunk: _Chunk, stream, handle) -> None:
        success = True
        chunk.stop_event.wait(self.chunk_seconds)
        chunk.stop_event.set()
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            logger.warning("Recorder stream did not close cleanly: %s", exc)
            success = False
        finally:
            handle.close()

        with self._lock:
            if self._active is chunk:
                self._active = None
        self._finish(chunk, success and chunk.frames_written > 0)

    def _finish(self, chunk: _Chunk, success: bool) -> None:
        if chunk.finished:
            return
        chunk.finished = True
        self.on_chunk_finished(chunk.path, success)

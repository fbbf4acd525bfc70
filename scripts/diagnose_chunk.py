import argparse
import os
import sys
import threading
import wave

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tonewatch.recorder import ChunkRecorder, find_input_device
from tonewatch.storage import resolve_chunk_dir


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--device", help="Device name substring.")
    parser.add_argument("--seconds", type=float, default=5.0, help="Chunk duration.")
    parser.add_argument("--rate", type=int, default=16000, help="Sample rate.")
    parser.add_argument("--keep", action="store_true", help="Keep the chunk file.")
    args = parser.parse_args()

    info = find_input_device(args.device)
    print(f"Input device: {info.get('name', '')}")
    print(f"Max input channels: {info.get('max_input_channels', 0)}")

    done = threading.Event()
    result = {}

    def _finished(path: str, success: bool) -> None:
        result["path"] = path
        result["success"] = success
        done.set()

    recorder = ChunkRecorder(
        resolve_chunk_dir(None),
        _finished,
        chunk_seconds=args.seconds,
        sample_rate_hz=args.rate,
        device_name=args.device,
    )
    recorder.start_new_chunk()
    print(f"Recording {args.seconds:.1f}s...")
    done.wait(args.seconds + 10)
    recorder.stop()

    path = result.get("path")
    print(f"Success: {result.get('success')}")
    if path and os.path.exists(path):
        with wave.open(path, "rb") as handle:
            print(f"Frames: {handle.getnframes()} at {handle.getframerate()} Hz")
        if args.keep:
            print(f"Kept {path}")
        else:
            os.remove(path)
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    raise SystemExit(main())

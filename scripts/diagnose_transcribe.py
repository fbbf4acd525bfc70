import argparse
import os
import sys
import time

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tonewatch.transcriber import Transcriber


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("audio_path", help="Path to audio file to transcribe.")
    parser.add_argument("--model", default="small", help="Whisper model name.")
    parser.add_argument("--language", default="en", help="Language code (e.g., en).")
    parser.add_argument("--device", help="Device preference (cpu/cuda).")
    parser.add_argument("--compute-type", help="Compute type (int8/float16).")
    args = parser.parse_args()

    transcriber = Transcriber(
        model_name=args.model,
        language=args.language,
        device=args.device,
        compute_type=args.compute_type,
    )
    started = time.time()
    text = transcriber.transcribe(args.audio_path)
    elapsed = time.time() - started
    print(f"Characters: {len(text)}")
    print(text or "<no speech>")
    print(f"Elapsed: {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

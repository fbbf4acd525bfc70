"""CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import threading

from .app import build_app, build_classifier, shutdown, startup
from .classifier import ClassifierUnavailable
from .config import Config, load_config
from .logging_utils import setup_logging
from .models import MonitorState
from .monitor import Phase
from .preferences import PromptPreferences
from .recorder import list_input_devices
from .storage import cleanup_chunks

logger = logging.getLogger("tonewatch")


def _load(path: str) -> Config:
    if os.path.exists(path):
        return load_config(path)
    return Config()


def _describe(state: MonitorState) -> str:
    if state.status_message:
        return f"Disabled: {state.status_message}"
    if not state.enabled:
        return "Disabled"
    if state.tone_verdict is None:
        return "Listening... no tone yet"
    if state.tone_verdict:
        return "Listening... agreeable"
    reason = f" — {state.disagreeable_reason}" if state.disagreeable_reason else ""
    return f"Listening... disagreeable{reason}"


def _run(config: Config) -> int:
    startup(config)
    app = build_app(config)
    stop_event = threading.Event()
    last = {"line": None, "text": None}

    def _on_state(state: MonitorState) -> None:
        line = _describe(state)
        if line != last["line"]:
            print(line)
            last["line"] = line
        if state.live_text and state.live_text != last["text"]:
            print(f"  > {state.live_text}")
            last["text"] = state.live_text
        if app.monitor.phase is Phase.DISABLED:
            stop_event.set()

    app.monitor.subscribe(_on_state)
    app.context.post(app.monitor.toggle)
    print("Tone monitor starting. Press Ctrl+C to stop.")
    try:
        app.context.run_forever(stop_event)
    except KeyboardInterrupt:
        print("Stopping...")
    finally:
        shutdown(app)
    return 1 if app.monitor.state.status_message else 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="tonewatch")
    parser.add_argument("--config", default="tonewatch_config.yml", help="Config.")
    parser.add_argument("--debug", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Monitor the microphone in the terminal.")
    sub.add_parser("gui", help="Open the monitor window.")

    devices_cmd = sub.add_parser("devices")
    devices_cmd.add_argument("--match", help="Filter device names by substring.")

    classify_cmd = sub.add_parser("classify")
    classify_cmd.add_argument("text", help="Text to classify.")

    prompt_cmd = sub.add_parser("prompt")
    prompt_sub = prompt_cmd.add_subparsers(dest="action")
    prompt_sub.add_parser("show")
    prompt_set = prompt_sub.add_parser("set")
    prompt_set.add_argument("value", help="New classification prompt.")
    prompt_sub.add_parser("reset")

    sub.add_parser("cleanup", help="Delete orphaned chunk files.")

    args = parser.parse_args()
    config = _load(args.config)
    _, log_path = setup_logging(
        config.log_dir, logging.DEBUG if args.debug else logging.INFO
    )
    logger.debug("Logging to %s", log_path)

    if args.command == "run":
        return _run(config)

    if args.command == "gui":
        from .gui import launch_gui

        launch_gui(config)
        return 0

    if args.command == "devices":
        devices = list_input_devices()
        if args.match:
            devices = [
                d for d in devices if args.match.lower() in d.get("name", "").lower()
            ]
        for device in devices:
            name = device.get("name", "Unknown")
            index = device.get("index", "?")
            channels = device.get("max_input_channels", 0)
            print(f"[{index}] {name} (inputs: {channels})")
        return 0

    if args.command == "classify":
        prefs = PromptPreferences(config.preferences_path)
        try:
            result = build_classifier(config).classify(args.text, prefs.get_prompt())
        except ClassifierUnavailable as exc:
            print(f"Classifier unavailable: {exc}")
            return 1
        if result.agreeable:
            print("Agreeable")
        else:
            print(f"Disagreeable: {result.reason or 'no reason given'}")
        return 0

    if args.command == "prompt":
        prefs = PromptPreferences(config.preferences_path)
        if args.action == "set":
            prefs.set_prompt(args.value)
        elif args.action == "reset":
            prefs.reset_prompt()
        print(prefs.get_prompt())
        return 0

    if args.command == "cleanup":
        removed = cleanup_chunks(config.chunks.directory, config.chunks.prefix)
        print(f"Removed {removed} chunk files")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Tkinter window for the tone monitor."""

from __future__ import annotations

import logging
import threading

from .app import build_app, shutdown, startup
from .config import Config
from .models import MonitorState
from .monitor import Phase

logger = logging.getLogger("tonewatch")

POLL_MS = 100


def _verdict_line(state: MonitorState) -> tuple[str, str]:
    if state.status_message:
        return state.status_message, "#9aa4b2"
    if state.tone_verdict is None:
        return "No tone yet", "#9aa4b2"
    if state.tone_verdict:
        return "Agreeable", "#4ade80"
    if state.disagreeable_reason:
        return f"Disagreeable — {state.disagreeable_reason}", "#f87171"
    return "Disagreeable", "#f87171"


def launch_gui(config: Config) -> None:
    import tkinter as tk
    from tkinter import ttk

    startup(config)
    app = build_app(config)
    monitor = app.monitor

    root = tk.Tk()
    root.title("Tonewatch")
    root.configure(bg="#0b0f14")
    root.minsize(520, 400)

    style = ttk.Style(root)
    try:
        style.theme_use("clam")
    except tk.TclError:
        pass
    style.configure("TFrame", background="#0b0f14")
    style.configure("TLabel", background="#0b0f14", foreground="#d8e1ff")
    style.configure(
        "TButton",
        background="#132033",
        foreground="#e6f1ff",
        borderwidth=1,
        relief="flat",
    )
    style.map(
        "TButton",
        background=[("active", "#1b2a44")],
        foreground=[("active", "#ffffff")],
    )

    def _thread_excepthook(args) -> None:
        logger.exception(
            "Thread exception",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    threading.excepthook = _thread_excepthook

    frame = ttk.Frame(root, padding=16)
    frame.pack(fill="both", expand=True)

    header = ttk.Frame(frame)
    header.pack(fill="x")
    toggle_var = tk.StringVar(value="Start listening")
    toggle_btn = ttk.Button(header, textvariable=toggle_var)
    toggle_btn.pack(side="left")
    verdict_var = tk.StringVar(value="No tone yet")
    verdict_label = ttk.Label(header, textvariable=verdict_var, wraplength=320, justify="right")
    verdict_label.pack(side="right")

    transcript = tk.Text(
        frame,
        height=8,
        wrap="word",
        bg="#111827",
        fg="#e6f1ff",
        relief="flat",
        font=("TkDefaultFont", 11),
    )
    transcript.pack(fill="both", expand=True, pady=(12, 8))

    flagged_header = ttk.Frame(frame)
    flagged_header.pack(fill="x")
    ttk.Label(flagged_header, text="Bad tone transcripts", foreground="#f87171").pack(side="left")
    ttk.Button(flagged_header, text="Clear", command=monitor.clear_flagged).pack(side="right")

    flagged = tk.Listbox(
        frame,
        height=6,
        bg="#111827",
        fg="#fca5a5",
        relief="flat",
        highlightthickness=0,
    )
    flagged.pack(fill="both", expand=False, pady=(4, 0))

    def _render(state: MonitorState) -> None:
        if monitor.phase is Phase.STARTING:
            toggle_var.set("Starting...")
        else:
            toggle_var.set("Stop listening" if state.enabled else "Start listening")
        text, colour = _verdict_line(state)
        verdict_var.set(text)
        verdict_label.configure(foreground=colour)

        transcript.configure(state="normal")
        transcript.delete("1.0", "end")
        transcript.insert("1.0", state.live_text or "Transcript will appear here...")
        transcript.configure(state="disabled")

        flagged.delete(0, "end")
        for item in reversed(state.flagged):
            reason = f" — {item.reason}" if item.reason else ""
            flagged.insert("end", f"{item.timestamp:%H:%M:%S}{reason}: {item.text}")

    def _open_preferences() -> None:
        win = tk.Toplevel(root)
        win.title("Preferences")
        win.configure(bg="#0b0f14")
        body = ttk.Frame(win, padding=20)
        body.pack(fill="both", expand=True)
        ttk.Label(body, text="Agreeable tone prompt").pack(anchor="w")
        ttk.Label(
            body,
            text="Customize how the app evaluates tone. This prompt is sent to the classifier.",
            foreground="#9aa4b2",
        ).pack(anchor="w", pady=(0, 8))
        editor = tk.Text(body, height=8, width=64, wrap="word", bg="#111827", fg="#e6f1ff")
        editor.insert("1.0", app.preferences.get_prompt())
        editor.pack(fill="both", expand=True)

        def _save() -> None:
            app.preferences.set_prompt(editor.get("1.0", "end"))

        def _reset() -> None:
            app.preferences.reset_prompt()
            editor.delete("1.0", "end")
            editor.insert("1.0", app.preferences.get_prompt())

        buttons = ttk.Frame(body)
        buttons.pack(fill="x", pady=(8, 0))
        ttk.Button(buttons, text="Reset to Default", command=_reset).pack(side="left")
        ttk.Button(buttons, text="Save", command=_save).pack(side="right")

    def _toggle() -> None:
        monitor.toggle()
        _render(monitor.state)

    toggle_btn.configure(command=_toggle)
    ttk.Button(header, text="Preferences", command=_open_preferences).pack(side="left", padx=8)

    def _poll() -> None:
        app.context.run_pending()
        root.after(POLL_MS, _poll)

    def _on_close() -> None:
        logger.info("Window closed")
        app.context.run_pending()
        shutdown(app)
        root.destroy()

    monitor.subscribe(_render)
    root.protocol("WM_DELETE_WINDOW", _on_close)
    _render(monitor.state)
    root.after(POLL_MS, _poll)
    root.mainloop()

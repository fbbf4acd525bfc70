import os
from datetime import datetime, timedelta

from tonewatch.classifier import ClassifierUnavailable, UnavailableReason, UnparseableResponse
from tonewatch.events import CallbackQueue
from tonewatch.models import ClassificationResult
from tonewatch.monitor import Phase, ToneMonitor

PREFIX = "tone_chunk_"


class FakeRecorder:
    def __init__(self, directory, on_chunk_finished):
        self.directory = directory
        self.on_chunk_finished = on_chunk_finished
        self.active = None
        self.created = []
        self.fail_next = 0

    def start_new_chunk(self):
        self.stop()
        path = os.path.join(self.directory, f"{PREFIX}{len(self.created)}.wav")
        with open(path, "wb") as handle:
            handle.write(b"RIFF")
        self.created.append(path)
        if self.fail_next:
            self.fail_next -= 1
            self.on_chunk_finished(path, False)
            return path
        self.active = path
        return path

    def finish(self, success=True):
        path, self.active = self.active, None
        self.on_chunk_finished(path, success)

    def stop(self):
        if self.active is not None:
            self.finish(True)


class FakeTranscriber:
    def __init__(self, texts=None):
        self.texts = list(texts or [])
        self.calls = []

    def transcribe(self, path, task=None):
        self.calls.append(path)
        item = self.texts.pop(0) if self.texts else ""
        if isinstance(item, Exception):
            raise item
        return item


class FakeClassifier:
    def __init__(self, results=None):
        self.results = list(results or [])
        self.calls = []

    def classify(self, text, question):
        self.calls.append((text, question))
        item = self.results.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def request_authorization(self):
        return True

    def deliver(self, request):
        self.sent.append(request)
        return True


class FakePermissions:
    def __init__(self, granted=True):
        self.granted = granted

    def request(self):
        return self.granted


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class Harness:
    def __init__(
        self, tmp_path, texts=None, results=None, granted=True, deferred=False, flagged_limit=100
    ):
        self.workers = []
        spawn = self.workers.append if deferred else (lambda target: target())
        self.context = CallbackQueue(spawn=spawn)
        self.dir = str(tmp_path)
        self.recorders = []
        self.transcriber = FakeTranscriber(texts)
        self.classifier = FakeClassifier(results)
        self.notifier = FakeNotifier()
        self.permissions = FakePermissions(granted)
        self.clock = FakeClock()
        self.monitor = ToneMonitor(
            self.context,
            self._make_recorder,
            self.transcriber,
            self.classifier,
            self.notifier,
            self.permissions,
            self.dir,
            chunk_prefix=PREFIX,
            question_provider=lambda: "Is it polite?",
            clock=self.clock,
            flagged_limit=flagged_limit,
        )

    def _make_recorder(self, on_chunk_finished):
        recorder = FakeRecorder(self.dir, on_chunk_finished)
        self.recorders.append(recorder)
        return recorder

    @property
    def recorder(self):
        return self.recorders[-1]

    def drain(self):
        while True:
            ran = self.context.run_pending()
            while self.workers:
                self.workers.pop(0)()
                ran += 1
            if not ran:
                return

    def chunk_files(self):
        return [name for name in os.listdir(self.dir) if name.startswith(PREFIX)]

    def start(self):
        self.monitor.toggle()
        self.drain()

    def speak(self):
        self.recorder.finish(True)
        self.drain()


def test_start_resets_state_and_records_first_chunk(tmp_path):
    h = Harness(tmp_path)
    h.start()

    state = h.monitor.state
    assert state.enabled is True
    assert h.monitor.phase is Phase.RUNNING
    assert state.live_text == ""
    assert state.tone_verdict is None
    assert state.status_message is None
    assert len(h.recorder.created) == 1


def test_permission_denied_stays_disabled_without_status(tmp_path):
    h = Harness(tmp_path, granted=False)
    h.start()

    state = h.monitor.state
    assert state.enabled is False
    assert state.status_message is None
    assert h.monitor.phase is Phase.DISABLED
    assert h.recorders == []


def test_toggle_while_starting_is_ignored(tmp_path):
    h = Harness(tmp_path, deferred=True)
    h.monitor.toggle()
    h.monitor.toggle()
    assert h.monitor.phase is Phase.STARTING
    h.drain()

    assert h.monitor.phase is Phase.RUNNING
    assert len(h.recorders) == 1
    assert len(h.recorder.created) == 1


def test_empty_transcript_clears_verdict_without_classifying(tmp_path):
    h = Harness(tmp_path, texts=["   "])
    h.start()
    h.speak()

    state = h.monitor.state
    assert state.tone_verdict is None
    assert state.disagreeable_reason is None
    assert h.classifier.calls == []
    assert len(h.recorder.created) == 2


def test_transcription_failure_is_treated_as_empty(tmp_path):
    h = Harness(tmp_path, texts=[RuntimeError("recognizer crashed"), "Thanks"],
                results=[ClassificationResult(True)])
    h.start()
    h.speak()
    assert h.monitor.state.live_text == ""
    assert h.monitor.state.enabled is True

    h.speak()
    assert h.monitor.state.tone_verdict is True
    assert h.chunk_files() == [os.path.basename(h.recorder.active)]


def test_recording_failure_starts_replacement_chunk(tmp_path):
    h = Harness(tmp_path)
    h.start()
    h.recorder.fail_next = 1
    h.recorder.finish(False)
    h.drain()

    assert h.monitor.state.enabled is True
    assert len(h.recorder.created) == 3
    assert h.transcriber.calls == []
    assert h.chunk_files() == [os.path.basename(h.recorder.active)]


def test_classifier_failure_disables_and_toggle_restarts(tmp_path):
    error = ClassifierUnavailable(UnavailableReason.MODEL_NOT_READY)
    h = Harness(tmp_path, texts=["hello there", ""], results=[error])
    h.start()
    h.speak()

    state = h.monitor.state
    assert state.enabled is False
    assert state.status_message == UnavailableReason.MODEL_NOT_READY.value
    assert state.tone_verdict is None
    assert h.chunk_files() == []

    h.start()
    assert h.monitor.state.enabled is True
    assert h.monitor.state.status_message is None


def test_unparseable_reply_is_fatal(tmp_path):
    h = Harness(tmp_path, texts=["hello"], results=[UnparseableResponse("Maybe")])
    h.start()
    h.speak()

    state = h.monitor.state
    assert state.enabled is False
    assert state.status_message
    assert h.notifier.sent == []


def test_stop_mid_transcription_does_not_chain(tmp_path):
    h = Harness(tmp_path, texts=["you never listen"], deferred=True)
    h.start()
    h.recorder.finish(True)
    h.context.run_pending()
    assert len(h.workers) == 1

    h.monitor.toggle()
    assert h.monitor.state.enabled is False
    h.drain()

    assert len(h.recorders[0].created) == 1
    assert h.classifier.calls == []
    assert h.monitor.state.live_text == ""
    assert h.chunk_files() == []


def test_stop_removes_active_chunk(tmp_path):
    h = Harness(tmp_path)
    h.start()
    assert len(h.chunk_files()) == 1

    h.monitor.toggle()
    h.drain()

    assert h.chunk_files() == []
    assert h.recorder.active is None
    assert h.monitor.phase is Phase.DISABLED


def test_cooldown_suppresses_second_alert_within_window(tmp_path):
    no = ClassificationResult(False, "harsh")
    h = Harness(tmp_path, texts=["a", "b"], results=[no, no])
    h.start()
    h.speak()
    h.clock.advance(30)
    h.speak()

    assert len(h.notifier.sent) == 1


def test_cooldown_allows_alert_after_window(tmp_path):
    no = ClassificationResult(False, "harsh")
    h = Harness(tmp_path, texts=["a", "b"], results=[no, no])
    h.start()
    h.speak()
    h.clock.advance(90)
    h.speak()

    assert len(h.notifier.sent) == 2


def test_conversation_scenario(tmp_path):
    h = Harness(
        tmp_path,
        texts=[
            "You did a great job",
            "This is unacceptable, fix it now",
            "Whatever, just do it",
            "I said now",
        ],
        results=[
            ClassificationResult(True),
            ClassificationResult(False, "confrontational phrasing"),
            ClassificationResult(False, "dismissive"),
            ClassificationResult(False, "demanding"),
        ],
    )
    h.start()

    h.speak()
    assert h.monitor.state.tone_verdict is True
    assert h.monitor.state.disagreeable_reason is None

    h.speak()
    state = h.monitor.state
    assert state.tone_verdict is False
    assert state.disagreeable_reason == "confrontational phrasing"
    assert len(h.notifier.sent) == 1
    first = h.notifier.sent[0]
    assert first.title == "Disagreeable tone detected"
    assert first.body == 'confrontational phrasing — "This is unacceptable, fix it now"'
    notified_at = state.last_notified_at

    h.clock.advance(10)
    h.speak()
    assert h.monitor.state.disagreeable_reason == "dismissive"
    assert len(h.notifier.sent) == 1

    h.clock.now = notified_at + timedelta(seconds=70)
    h.speak()
    assert len(h.notifier.sent) == 2
    assert h.monitor.state.last_notified_at == h.clock.now

    flagged = h.monitor.state.flagged
    assert [item.reason for item in flagged] == [
        "confrontational phrasing",
        "dismissive",
        "demanding",
    ]
    assert [q for _, q in h.classifier.calls] == ["Is it polite?"] * 4


def test_agreeable_verdict_clears_previous_reason(tmp_path):
    h = Harness(
        tmp_path,
        texts=["go away", "thank you"],
        results=[ClassificationResult(False, "rude"), ClassificationResult(True)],
    )
    h.start()
    h.speak()
    assert h.monitor.state.disagreeable_reason == "rude"
    h.speak()
    assert h.monitor.state.tone_verdict is True
    assert h.monitor.state.disagreeable_reason is None


def test_every_chunk_file_is_deleted(tmp_path):
    no = ClassificationResult(False, "curt")
    h = Harness(
        tmp_path,
        texts=["one", "", RuntimeError("boom"), "four"],
        results=[no, ClassificationResult(True)],
    )
    h.start()
    h.speak()
    h.speak()
    h.recorder.fail_next = 2
    h.recorder.finish(False)
    h.drain()
    h.speak()
    h.speak()
    h.monitor.toggle()
    h.drain()

    created = [p for r in h.recorders for p in r.created]
    assert len(created) == 8
    assert not any(os.path.exists(p) for p in created)


def test_flagged_transcripts_can_be_cleared(tmp_path):
    h = Harness(tmp_path, texts=["shut up"], results=[ClassificationResult(False)])
    h.start()
    h.speak()
    assert len(h.monitor.state.flagged) == 1
    assert h.notifier.sent[0].body == '"shut up"'

    h.monitor.clear_flagged()
    assert h.monitor.state.flagged == []


def test_subscribers_receive_snapshots(tmp_path):
    h = Harness(tmp_path, texts=["fine"], results=[ClassificationResult(True)])
    seen = []
    unsubscribe = h.monitor.subscribe(seen.append)
    h.start()
    h.speak()

    assert seen[0].enabled is True
    assert seen[-1].tone_verdict is True
    unsubscribe()
    h.monitor.toggle()
    assert seen[-1].enabled is True


def _classification_in_flight(h):
    h.start()
    h.recorder.finish(True)
    h.context.run_pending()
    h.workers.pop(0)()
    h.context.run_pending()
    assert len(h.workers) == 1


def test_classification_after_stop_is_discarded(tmp_path):
    h = Harness(
        tmp_path,
        texts=["go away"],
        results=[ClassificationResult(False, "rude")],
        deferred=True,
    )
    _classification_in_flight(h)
    h.monitor.toggle()
    h.workers.pop(0)()
    h.drain()

    state = h.monitor.state
    assert len(h.classifier.calls) == 1
    assert state.enabled is False
    assert state.tone_verdict is None
    assert state.disagreeable_reason is None
    assert state.flagged == []
    assert h.notifier.sent == []


def test_classification_from_previous_session_is_discarded_after_restart(tmp_path):
    h = Harness(
        tmp_path,
        texts=["go away"],
        results=[ClassificationResult(False, "rude")],
        deferred=True,
    )
    _classification_in_flight(h)
    h.monitor.toggle()
    h.monitor.toggle()
    assert h.monitor.phase is Phase.STARTING

    h.workers.pop()()
    h.context.run_pending()
    assert h.monitor.phase is Phase.RUNNING
    h.workers.pop(0)()
    h.drain()

    state = h.monitor.state
    assert state.enabled is True
    assert state.tone_verdict is None
    assert state.disagreeable_reason is None
    assert state.flagged == []
    assert h.notifier.sent == []
    assert len(h.recorders) == 2


def test_flagged_transcripts_keep_newest_entries(tmp_path):
    h = Harness(
        tmp_path,
        texts=["first", "second", "third"],
        results=[
            ClassificationResult(False, "a"),
            ClassificationResult(False, "b"),
            ClassificationResult(False, "c"),
        ],
        flagged_limit=2,
    )
    h.start()
    h.speak()
    h.speak()
    h.speak()

    flagged = h.monitor.state.flagged
    assert [entry.reason for entry in flagged] == ["b", "c"]
    assert [entry.text for entry in flagged] == ["second", "third"]

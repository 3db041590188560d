"""
Unit tests for the reparse scheduler and subject tracking.

Time is driven by a fake clock whose sleep() advances it, so every
debounce/attempt decision is deterministic.
"""

from pathlib import Path
from unittest.mock import Mock

from src.ops_logger import OpsLogger
from src.pipeline.document import ManualMutationSource, MutationBatch, StaticDocument
from src.pipeline.scheduler import (
    ReparseScheduler,
    SchedulerState,
    SubjectTracker,
    is_profile_url,
    subject_key,
)


FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"
PROFILE_URL = "https://www.linkedin.com/in/jane-doe/"
SPARSE_HTML = '<html><body><h1 class="text-heading-xlarge">Jane Doe</h1></body></html>'


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _sparse_doc():
    return StaticDocument(SPARSE_HTML, url=PROFILE_URL)


def _full_doc():
    return StaticDocument((FIXTURES / "profile_full.html").read_text(encoding="utf-8"), url=PROFILE_URL)


def _scheduler(clock, mutations, provider=_sparse_doc, url=PROFILE_URL, **kwargs):
    return ReparseScheduler(
        url,
        document_provider=provider,
        mutations=mutations,
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def test_profile_url_rules():
    assert is_profile_url(PROFILE_URL)
    assert is_profile_url("/in/jane-doe")
    assert not is_profile_url("https://www.linkedin.com/in/jane-doe/edit/intro/")
    assert not is_profile_url("https://www.linkedin.com/feed/")
    assert subject_key("https://www.linkedin.com/in/Jane-Doe/details/skills/") == "/in/jane-doe"
    assert subject_key("https://www.linkedin.com/company/acme/") is None


def test_initial_session_runs_after_delay():
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source)
    sched.start()
    assert clock.sleeps == [2.0]
    assert sched.sessions_run == 1
    assert sched.session_state.attempts_made == 1
    assert sched.state == SchedulerState.IDLE
    assert source.subscriber_count == 1


def test_triggers_inside_debounce_window_are_discarded():
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source)
    sched.start()  # completes at t=2.0

    clock.now = 5.0
    source.emit(MutationBatch(added_nodes=4))
    assert sched.sessions_run == 1
    assert sched.discarded_triggers == 1

    clock.now = 7.5
    source.emit(MutationBatch(added_nodes=4))
    assert sched.sessions_run == 2
    assert clock.sleeps[-1] == 0.5


def test_batches_without_added_nodes_are_ignored():
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source)
    sched.start()
    clock.now = 100.0
    source.emit(MutationBatch(added_nodes=0))
    assert sched.sessions_run == 1
    assert sched.discarded_triggers == 0


def test_attempt_limit_seals_and_keeps_partial_data(capsys):
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source)
    sched.start()
    for _ in range(5):
        clock.now += 10.0
        source.emit(MutationBatch(added_nodes=1))
    assert sched.sessions_run == 3
    assert sched.state == SchedulerState.SEALED
    assert sched.seal_reason == "attempt_limit"
    assert source.subscriber_count == 0
    assert sched.last_result.draft.name == "Jane Doe"
    assert "attempt limit reached" in capsys.readouterr().out


def test_valid_record_seals_and_unsubscribes():
    clock = FakeClock()
    source = ManualMutationSource()
    secondary = Mock()
    secondary.fetch.return_value = None
    sched = _scheduler(clock, source, provider=_full_doc, secondary=secondary)
    sched.start()
    assert sched.last_result.is_valid is True
    assert sched.state == SchedulerState.SEALED
    assert sched.seal_reason == "valid"
    assert source.subscriber_count == 0
    secondary.close.assert_called_once()

    clock.now = 100.0
    source.emit(MutationBatch(added_nodes=10))
    assert sched.sessions_run == 1


def test_triggers_while_scheduled_or_running_are_discarded():
    clock = FakeClock()
    source = ManualMutationSource()

    def provider():
        # Callback delivered while the session is reading the page
        source.emit(MutationBatch(added_nodes=1))
        return _sparse_doc()

    def sleep(seconds):
        clock.sleep(seconds)
        source.emit(MutationBatch(added_nodes=1))

    sched = ReparseScheduler(
        PROFILE_URL,
        document_provider=provider,
        mutations=source,
        clock=clock,
        sleep=sleep,
    )
    sched.start()
    assert sched.sessions_run == 1
    assert sched.discarded_triggers == 2
    assert sched.state == SchedulerState.IDLE


def test_failed_session_counts_as_attempt(capsys):
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source, provider=Mock(side_effect=RuntimeError("page closed")))
    sched.start()
    assert sched.session_state.attempts_made == 1
    assert sched.sessions_run == 0
    assert sched.state == SchedulerState.IDLE
    assert "session failed" in capsys.readouterr().out


def test_stop_while_waiting_skips_the_session():
    clock = FakeClock()
    source = ManualMutationSource()
    sched = None

    def sleep(seconds):
        clock.sleep(seconds)
        sched.stop("navigation")

    sched = ReparseScheduler(PROFILE_URL, document_provider=_sparse_doc, mutations=source, clock=clock, sleep=sleep)
    sched.start()
    assert sched.sessions_run == 0
    assert sched.seal_reason == "navigation"
    assert source.subscriber_count == 0


def test_non_profile_subject_never_starts(capsys):
    clock = FakeClock()
    source = ManualMutationSource()
    sched = _scheduler(clock, source, url="https://www.linkedin.com/feed/")
    sched.start()
    assert sched.sessions_run == 0
    assert source.subscriber_count == 0
    assert "not a profile page" in capsys.readouterr().out


def test_ops_records_emitted():
    clock = FakeClock()
    source = ManualMutationSource()
    ops = OpsLogger()
    sched = _scheduler(clock, source, provider=_full_doc, ops_logger=ops)
    sched.start()
    events = [r["event"] for r in ops.records]
    assert events == ["session", "sealed"]
    session = ops.records[0]
    assert session["pxe_ops"] == 1
    assert session["subject"] == PROFILE_URL
    assert session["is_valid"] is True
    assert session["counts"] == {"experience": 2, "education": 2, "skills": 2}
    assert ops.records[1]["reason"] == "valid"


class TestSubjectTracker:

    def _tracker(self, clock, source, created):
        def factory(url):
            sched = _scheduler(clock, source, url=url)
            created.append(sched)
            return sched
        return SubjectTracker(factory, sleep=clock.sleep)

    def test_same_subject_keeps_scheduler(self):
        clock, source, created = FakeClock(), ManualMutationSource(), []
        tracker = self._tracker(clock, source, created)
        first = tracker.on_location_change(PROFILE_URL, initial=True)
        again = tracker.on_location_change("https://www.linkedin.com/in/jane-doe/details/experience/")
        assert first is again
        assert len(created) == 1
        # Initial load waits only for the scheduler's own initial delay
        assert clock.sleeps == [2.0]

    def test_navigation_resets_state(self):
        clock, source, created = FakeClock(), ManualMutationSource(), []
        tracker = self._tracker(clock, source, created)
        first = tracker.on_location_change(PROFILE_URL, initial=True)
        second = tracker.on_location_change("https://www.linkedin.com/in/john-roe/")
        assert second is not first
        assert first.seal_reason == "navigation"
        assert second.session_state.attempts_made == 1
        assert clock.sleeps == [2.0, 1.5, 2.0]
        assert tracker.subject == "/in/john-roe"
        assert source.subscriber_count == 1

    def test_leaving_profiles_stops_tracking(self):
        clock, source, created = FakeClock(), ManualMutationSource(), []
        tracker = self._tracker(clock, source, created)
        first = tracker.on_location_change(PROFILE_URL, initial=True)
        assert tracker.on_location_change("https://www.linkedin.com/feed/") is None
        assert first.state == SchedulerState.SEALED
        assert tracker.current is None
        assert source.subscriber_count == 0

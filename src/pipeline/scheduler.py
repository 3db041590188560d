"""
Reparse Scheduler - re-run extraction while a live profile page settles

States: IDLE -> SCHEDULED -> RUNNING -> (IDLE | SEALED)

One scheduler instance exists per observed subject (profile URL). It
reacts to mutation batches that add nodes, debounces them, bounds the
number of attempts, and seals itself once the record is valid or the
attempt budget is spent. Sealing cancels the mutation subscription; only a
subject change (SubjectTracker) starts work again, with a fresh instance.

Time is injected (clock/sleep) so the machine is deterministic in tests.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
from urllib.parse import urlparse

from .document import Document, MutationBatch, MutationCallback, Subscription
from .errors import AttemptLimitExceeded
from .secondary import SecondarySource
from .session import DraftSink, ExtractionSession, SessionResult
from ..ops_logger import OpsLogger, ops_enabled


DEFAULT_ATTEMPT_LIMIT = 3
DEFAULT_DEBOUNCE_S = 5.0
DEFAULT_INITIAL_DELAY_S = 2.0
DEFAULT_REPARSE_DELAY_S = 0.5
DEFAULT_NAVIGATION_DELAY_S = 1.5

PROFILE_PATH_RE = re.compile(r"^/in/[^/]+")


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    SEALED = "sealed"


class MutationSource(Protocol):
    def subscribe(self, callback: MutationCallback) -> Subscription: ...


@dataclass
class ExtractionSessionState:
    """Per-subject counters shared by every session the scheduler runs."""
    attempts_made: int = 0
    attempt_limit: int = DEFAULT_ATTEMPT_LIMIT
    last_attempt_at: Optional[float] = None
    is_valid: bool = False


def _path(url: str) -> str:
    return urlparse(url).path if "://" in (url or "") else (url or "")


def is_profile_url(url: str, pattern: re.Pattern[str] = PROFILE_PATH_RE) -> bool:
    """Profile pages only; edit views of a profile are excluded."""
    path = _path(url)
    return bool(pattern.search(path)) and "/edit" not in path


def subject_key(url: str, pattern: re.Pattern[str] = PROFILE_PATH_RE) -> Optional[str]:
    """Canonical subject identity, e.g. '/in/jane-doe'."""
    m = pattern.search(_path(url))
    if not m:
        return None
    return m.group(0).rstrip("/").lower()


class ReparseScheduler:
    """Debounced, bounded re-extraction for one subject."""

    def __init__(
        self,
        subject_url: str,
        *,
        document_provider: Callable[[], Document],
        mutations: MutationSource,
        secondary: Optional[SecondarySource] = None,
        sink: Optional[DraftSink] = None,
        table: Optional[Dict[str, Any]] = None,
        attempt_limit: int = DEFAULT_ATTEMPT_LIMIT,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
        initial_delay_s: float = DEFAULT_INITIAL_DELAY_S,
        reparse_delay_s: float = DEFAULT_REPARSE_DELAY_S,
        profile_pattern: re.Pattern[str] = PROFILE_PATH_RE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        ops_logger: Optional[OpsLogger] = None,
    ) -> None:
        self.subject_url = subject_url
        self.document_provider = document_provider
        self.mutations = mutations
        self.secondary = secondary
        self.sink = sink
        self.table = table
        self.debounce_s = float(debounce_s)
        self.initial_delay_s = float(initial_delay_s)
        self.reparse_delay_s = float(reparse_delay_s)
        self.profile_pattern = profile_pattern
        self.clock = clock
        self.sleep = sleep
        self.ops_logger = ops_logger

        self.state = SchedulerState.IDLE
        self.session_state = ExtractionSessionState(attempt_limit=int(attempt_limit))
        self.subscription: Optional[Subscription] = None
        self.results: List[SessionResult] = []
        self.discarded_triggers = 0
        self.seal_reason: Optional[str] = None

    @property
    def last_result(self) -> Optional[SessionResult]:
        return self.results[-1] if self.results else None

    @property
    def sessions_run(self) -> int:
        return len(self.results)

    def _emit_ops(self, record: Dict[str, Any]) -> None:
        record = {"pxe_ops": 1, "subject": self.subject_url, **record}
        if self.ops_logger is not None:
            self.ops_logger.emit(record)
        elif ops_enabled():
            print(json.dumps(record, ensure_ascii=False, default=str))

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self) -> None:
        """Subscribe to mutations and run the initial (delayed) session."""
        if self.state == SchedulerState.SEALED:
            return
        if not is_profile_url(self.subject_url, self.profile_pattern):
            print(f"[scheduler] not a profile page, skipping: {self.subject_url}")
            return
        if self.subscription is None:
            self.subscription = self.mutations.subscribe(self.on_mutations)
        self._run_after(self.initial_delay_s)

    def stop(self, reason: str = "stopped") -> None:
        """Seal without running anything else (navigation or shutdown)."""
        self._seal(reason)

    def _seal(self, reason: str) -> None:
        if self.state == SchedulerState.SEALED:
            return
        self.state = SchedulerState.SEALED
        self.seal_reason = reason
        if self.subscription is not None:
            self.subscription.cancel()
            self.subscription = None
        if self.secondary is not None:
            self.secondary.close()
        self._emit_ops({
            "event": "sealed",
            "reason": reason,
            "attempts": self.session_state.attempts_made,
            "is_valid": self.session_state.is_valid,
        })

    # -------------------------
    # Triggers
    # -------------------------
    def on_mutations(self, batch: MutationBatch) -> None:
        """Mutation callback; decides synchronously whether to reparse."""
        if batch.added_nodes <= 0:
            return
        if self.state != SchedulerState.IDLE:
            # Sealed, or a session is already scheduled/running
            self.discarded_triggers += 1
            return
        if self.session_state.is_valid or not is_profile_url(self.subject_url, self.profile_pattern):
            return
        last = self.session_state.last_attempt_at
        if last is not None and (self.clock() - last) < self.debounce_s:
            self.discarded_triggers += 1
            return
        self._run_after(self.reparse_delay_s)

    def _run_after(self, delay_s: float) -> None:
        self.state = SchedulerState.SCHEDULED
        self.session_state.last_attempt_at = self.clock()
        if delay_s > 0:
            self.sleep(delay_s)
        if self.state != SchedulerState.SCHEDULED:
            # Stopped while waiting
            return
        self._run_session()

    def _run_session(self) -> None:
        st = self.session_state
        st.attempts_made += 1
        if st.attempts_made > st.attempt_limit:
            err = AttemptLimitExceeded(self.subject_url, st.attempts_made, st.attempt_limit)
            print(f"[scheduler] {err}; keeping partial data")
            self._seal("attempt_limit")
            return

        self.state = SchedulerState.RUNNING
        try:
            session = ExtractionSession(
                self.document_provider(),
                table=self.table,
                secondary=self.secondary,
                sink=self.sink,
            )
            result = session.run()
        except Exception as e:
            # Page went away mid-read or similar; the attempt still counts
            print(f"[scheduler] session failed for {self.subject_url}: {e}")
            st.last_attempt_at = self.clock()
            self.state = SchedulerState.IDLE
            self._emit_ops({"event": "session", "attempt": st.attempts_made, "error": str(e)})
            return

        self.results.append(result)
        st.last_attempt_at = self.clock()
        self._emit_ops({
            "event": "session",
            "attempt": st.attempts_made,
            "stage": result.stage.value,
            "is_valid": result.is_valid,
            "secondary": {"consulted": result.secondary_consulted, "available": result.secondary_available},
            "backfilled": list(result.backfilled),
            "exhausted": list(result.exhausted),
            "counts": {
                "experience": len(result.draft.experience),
                "education": len(result.draft.education),
                "skills": len(result.draft.skills),
            },
            "durations": dict(result.durations),
            "delivery_error": result.delivery_error,
        })
        if result.is_valid:
            st.is_valid = True
            self._seal("valid")
            return
        self.state = SchedulerState.IDLE


class SubjectTracker:
    """Owns the scheduler for whichever profile the page currently shows.

    Navigation to a different subject stops the current scheduler and
    builds a new one, so counters and the secondary cache start fresh.
    """

    def __init__(
        self,
        scheduler_factory: Callable[[str], ReparseScheduler],
        *,
        profile_pattern: re.Pattern[str] = PROFILE_PATH_RE,
        navigation_delay_s: float = DEFAULT_NAVIGATION_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.scheduler_factory = scheduler_factory
        self.profile_pattern = profile_pattern
        self.navigation_delay_s = float(navigation_delay_s)
        self.sleep = sleep
        self.subject: Optional[str] = None
        self.current: Optional[ReparseScheduler] = None

    def stop(self) -> None:
        if self.current is not None:
            self.current.stop("navigation")
        self.current = None
        self.subject = None

    def on_location_change(self, url: str, *, initial: bool = False) -> Optional[ReparseScheduler]:
        if not is_profile_url(url, self.profile_pattern):
            self.stop()
            return None
        key = subject_key(url, self.profile_pattern)
        if self.current is not None and key == self.subject:
            return self.current
        self.stop()
        if not initial and self.navigation_delay_s > 0:
            # Let the new page content load before the first pass
            self.sleep(self.navigation_delay_s)
        self.subject = key
        self.current = self.scheduler_factory(url)
        self.current.start()
        return self.current

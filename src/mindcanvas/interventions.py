"""Pedagogical interventions driven by attention changes.

Listens to attention state changes and decides when to interrupt the student:

- distracted for a while → quick quiz
- restless → breathing exercise
- focused → the focus streak grows

Concluding an intervention resets the attention engine, so the state that
triggered it has to be re-established from fresh samples before it can
trigger again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from mindcanvas.attention import (
    ATTENTION_INTERVENTIONS,
    AttentionEngine,
    AttentionEvent,
    AttentionLabel,
    Intervention,
)

logger = logging.getLogger("mindcanvas.interventions")

INTERVENTIONS_BY_KIND: dict[str, Intervention] = {
    i.kind: i for i in ATTENTION_INTERVENTIONS.values() if i is not None
}


@dataclass
class InterventionEvent:
    """An intervention was opened or concluded."""
    intervention: Intervention
    opened: bool
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "type": "intervention",
            "status": "opened" if self.opened else "concluded",
            **self.intervention.to_dict(),
            "timestamp": self.timestamp,
        }


class InterventionCoordinator:
    """Turns attention changes into interventions and focus statistics."""

    def __init__(
        self,
        engine: AttentionEngine,
        distraction_grace_seconds: float = 5.0,
        start_time: Optional[float] = None,
    ):
        self.engine = engine
        self.distraction_grace_seconds = distraction_grace_seconds

        self._active: Optional[Intervention] = None
        self._last_state = AttentionLabel.UNKNOWN
        # The first state is timed from when tracking began.
        self._state_since = start_time if start_time is not None else time.monotonic()
        self._focus_streak = 0
        self._total_focus_time = 0.0
        self._callbacks: list[Callable[[InterventionEvent], None]] = []

        engine.on_state_change(self.handle_state_change)

    def on_intervention(self, callback: Callable[[InterventionEvent], None]):
        self._callbacks.append(callback)

    def handle_state_change(self, event: AttentionEvent) -> Optional[InterventionEvent]:
        now = event.timestamp
        duration = now - self._state_since

        if self._last_state == AttentionLabel.FOCUSED:
            self._total_focus_time += duration

        self._state_since = now
        self._last_state = event.state

        if event.state == AttentionLabel.DISTRACTED and duration > self.distraction_grace_seconds:
            self._focus_streak = 0
            return self._open(INTERVENTIONS_BY_KIND["quiz"], now)
        if event.state == AttentionLabel.RESTLESS:
            self._focus_streak = 0
            return self._open(INTERVENTIONS_BY_KIND["breathing"], now)
        if event.state == AttentionLabel.FOCUSED:
            self._focus_streak += 1
        return None

    def begin(self, timestamp: Optional[float] = None):
        """Restart the clock for the current state, e.g. when the camera starts."""
        self._state_since = timestamp if timestamp is not None else time.monotonic()

    def request(self, kind: str, timestamp: Optional[float] = None) -> Optional[InterventionEvent]:
        """Open an intervention on demand ("quiz" or "breathing")."""
        if kind not in INTERVENTIONS_BY_KIND:
            raise ValueError(f"unknown intervention kind: {kind!r}")
        now = timestamp if timestamp is not None else time.monotonic()
        return self._open(INTERVENTIONS_BY_KIND[kind], now)

    def conclude(self, timestamp: Optional[float] = None) -> Optional[InterventionEvent]:
        """Close the open intervention and restart attention tracking."""
        now = timestamp if timestamp is not None else time.monotonic()
        concluded = self._active
        self._active = None
        self.engine.reset()
        self._last_state = AttentionLabel.UNKNOWN
        self._state_since = now

        if concluded is None:
            return None
        logger.info("Intervention concluded: %s", concluded.kind)
        return self._emit(InterventionEvent(concluded, opened=False, timestamp=now))

    def focus_time(self, timestamp: Optional[float] = None) -> float:
        """Total seconds spent focused, including the current stretch."""
        total = self._total_focus_time
        if self._last_state == AttentionLabel.FOCUSED:
            now = timestamp if timestamp is not None else time.monotonic()
            total += now - self._state_since
        return total

    def _open(self, intervention: Intervention, now: float) -> Optional[InterventionEvent]:
        if self._active is not None:
            return None
        self._active = intervention
        logger.info("Intervention opened: %s", intervention.kind)
        return self._emit(InterventionEvent(intervention, opened=True, timestamp=now))

    def _emit(self, event: InterventionEvent) -> InterventionEvent:
        for cb in self._callbacks:
            cb(event)
        return event

    @property
    def active(self) -> Optional[Intervention]:
        return self._active

    @property
    def focus_streak(self) -> int:
        return self._focus_streak

"""Temporal stabilization of the raw per-frame gesture stream.

Raw labels flicker from frame to frame. The stabilizer only commits to a new
gesture once the same raw label has been seen on ``stability_frames``
consecutive frames, then emits a single change event. While the stable
gesture is ``draw`` every frame's index fingertip is streamed as a draw
point. Undo and clear are discrete actions and pass through an
``ActionDebouncer`` so a held gesture can't fire twice in quick succession.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from mindcanvas.classifier import LandmarkInput, as_landmark_array
from mindcanvas.gestures import INDEX_TIP, GestureLabel
from mindcanvas.strokes import Point


@dataclass
class GestureEvent:
    """The stable gesture changed."""
    gesture: GestureLabel
    previous: GestureLabel
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "type": "gesture",
            "gesture": self.gesture.value,
            "previous": self.previous.value,
            "timestamp": self.timestamp,
        }


@dataclass
class DrawPointEvent:
    """A new point for the stroke being drawn, already mirrored."""
    point: Point
    timestamp: float

    def to_dict(self) -> dict:
        return {"type": "draw_point", **self.point.to_dict(), "timestamp": self.timestamp}


@dataclass
class ActionEvent:
    """A debounced undo or clear command."""
    action: GestureLabel
    timestamp: float

    def to_dict(self) -> dict:
        return {"type": "action", "action": self.action.value, "timestamp": self.timestamp}


StabilizerEvent = Union[GestureEvent, DrawPointEvent, ActionEvent]


class ActionDebouncer:
    """Wall-clock cooldown for discrete gesture actions.

    The same action can't fire twice within ``cooldown_seconds``. Only the
    last fired action is remembered, so a different action fires right away.
    Drawing is continuous and never goes through here.
    """

    ACTIONS = frozenset({GestureLabel.UNDO, GestureLabel.CLEAR})

    def __init__(self, cooldown_seconds: float = 0.5):
        self.cooldown_seconds = cooldown_seconds
        self._last_action: GestureLabel = GestureLabel.NONE
        self._last_time: float = float("-inf")

    def should_fire(self, action: GestureLabel, timestamp: Optional[float] = None) -> bool:
        """Return True and record the action if it is outside the cooldown."""
        if action not in self.ACTIONS:
            return False

        now = timestamp if timestamp is not None else time.monotonic()
        if action == self._last_action and now - self._last_time < self.cooldown_seconds:
            return False

        self._last_action = action
        self._last_time = now
        return True

    def reset(self):
        self._last_action = GestureLabel.NONE
        self._last_time = float("-inf")


class GestureStabilizer:
    """Debounces raw gesture labels into stable gesture changes.

    Callbacks:
        on_gesture(GestureEvent): stable gesture changed
        on_draw_point(DrawPointEvent): fingertip position while drawing
        on_action(ActionEvent): debounced undo / clear
    """

    def __init__(
        self,
        stability_frames: int = 3,
        debouncer: Optional[ActionDebouncer] = None,
        mirror_x: bool = True,
    ):
        if stability_frames < 1:
            raise ValueError("stability_frames must be >= 1")
        self.stability_frames = stability_frames
        self.debouncer = debouncer or ActionDebouncer()
        self.mirror_x = mirror_x

        self._last_raw = GestureLabel.NONE
        self._consecutive = 0
        self._stable = GestureLabel.NONE

        self._gesture_callbacks: list[Callable[[GestureEvent], None]] = []
        self._point_callbacks: list[Callable[[DrawPointEvent], None]] = []
        self._action_callbacks: list[Callable[[ActionEvent], None]] = []

    def on_gesture(self, callback: Callable[[GestureEvent], None]):
        self._gesture_callbacks.append(callback)

    def on_draw_point(self, callback: Callable[[DrawPointEvent], None]):
        self._point_callbacks.append(callback)

    def on_action(self, callback: Callable[[ActionEvent], None]):
        self._action_callbacks.append(callback)

    def update(
        self,
        raw: GestureLabel,
        landmarks: LandmarkInput = None,
        timestamp: Optional[float] = None,
    ) -> list[StabilizerEvent]:
        """Feed one frame's raw label (and the landmarks it came from).

        Returns the events fired by this frame, in emission order.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        events: list[StabilizerEvent] = []

        if raw == self._last_raw:
            self._consecutive += 1
        else:
            self._last_raw = raw
            self._consecutive = 1

        if self._consecutive >= self.stability_frames and raw != self._stable:
            events.extend(self._change_to(raw, now))

        if self._stable == GestureLabel.DRAW:
            point_event = self._draw_point(landmarks, now)
            if point_event is not None:
                events.append(point_event)
                for cb in self._point_callbacks:
                    cb(point_event)

        return events

    def release(self, timestamp: Optional[float] = None) -> list[StabilizerEvent]:
        """The hand left the frame: drop straight to ``none``.

        Bypasses the stability window so an in-progress stroke ends as soon
        as the hand is gone. The raw run restarts, so a returning hand needs
        a full window before its gesture is reported again.
        """
        now = timestamp if timestamp is not None else time.monotonic()
        self._last_raw = GestureLabel.NONE
        self._consecutive = 0
        if self._stable == GestureLabel.NONE:
            return []
        return self._change_to(GestureLabel.NONE, now)

    def reset(self):
        """Forget the raw run and the stable gesture. Emits nothing."""
        self._last_raw = GestureLabel.NONE
        self._consecutive = 0
        self._stable = GestureLabel.NONE
        self.debouncer.reset()

    def _change_to(self, gesture: GestureLabel, now: float) -> list[StabilizerEvent]:
        previous = self._stable
        self._stable = gesture
        change = GestureEvent(gesture=gesture, previous=previous, timestamp=now)
        for cb in self._gesture_callbacks:
            cb(change)

        events: list[StabilizerEvent] = [change]
        if self.debouncer.should_fire(gesture, now):
            action = ActionEvent(action=gesture, timestamp=now)
            events.append(action)
            for cb in self._action_callbacks:
                cb(action)
        return events

    def _draw_point(self, landmarks: LandmarkInput, now: float) -> Optional[DrawPointEvent]:
        arr = as_landmark_array(landmarks)
        if arr is None:
            return None
        x, y = float(arr[INDEX_TIP, 0]), float(arr[INDEX_TIP, 1])
        if self.mirror_x:
            x = 1.0 - x
        return DrawPointEvent(point=Point(x, y), timestamp=now)

    @property
    def stable_label(self) -> GestureLabel:
        return self._stable

    @property
    def consecutive_count(self) -> int:
        """Length of the current run of identical raw labels."""
        return self._consecutive

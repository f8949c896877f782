"""Countdown used between sets.

The timer does not own a thread. Callers drive it with :meth:`RestTimer.tick`
as often as they like; the remaining time is derived from a monotonic clock,
so extra ticks within the same second change nothing and the completion
callback fires once per run.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional

from algorithms import MathTools
from errors import ValidationError

logger = logging.getLogger(__name__)

PRESET_TIMES = (30, 60, 90, 120, 180)
MIN_REST_SECONDS = 10


class TimerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class RestTimer:
    """Start/pause/reset countdown in whole seconds."""

    def __init__(
        self,
        duration: int = 60,
        on_complete: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if duration <= 0:
            raise ValidationError("duration must be positive")
        self.selected = int(duration)
        self.remaining = int(duration)
        self.state = TimerState.STOPPED
        self.on_complete = on_complete
        self._clock = clock
        self._anchor = 0.0
        self._partial = 0.0
        self.completions = 0

    @property
    def running(self) -> bool:
        return self.state is TimerState.RUNNING

    @property
    def progress(self) -> float:
        if self.selected <= 0:
            return 0.0
        return MathTools.clamp((self.selected - self.remaining) / self.selected, 0.0, 1.0)

    def start(self, duration: Optional[int] = None) -> None:
        """Begin a new countdown, optionally with a new duration."""
        if duration is not None:
            if duration <= 0:
                raise ValidationError("duration must be positive")
            self.selected = int(duration)
        self.remaining = self.selected
        self._partial = 0.0
        self._anchor = self._clock()
        self.state = TimerState.RUNNING
        logger.debug("Rest timer started for %ss", self.selected)

    def pause(self) -> None:
        if self.state is not TimerState.RUNNING:
            return
        self.tick()
        if self.state is TimerState.RUNNING:
            self._partial = self._clock() - self._anchor
            self.state = TimerState.PAUSED

    def resume(self) -> None:
        if self.state is not TimerState.PAUSED:
            return
        self._anchor = self._clock() - self._partial
        self._partial = 0.0
        self.state = TimerState.RUNNING

    def toggle(self) -> None:
        """Start, pause or resume depending on the current state."""
        if self.state is TimerState.RUNNING:
            self.pause()
        elif self.state is TimerState.PAUSED:
            self.resume()
        else:
            self.start()

    def reset(self) -> None:
        self.state = TimerState.STOPPED
        self.remaining = self.selected
        self._partial = 0.0

    def tick(self) -> int:
        """Advance by the whole seconds elapsed since the last step."""
        if self.state is not TimerState.RUNNING:
            return self.remaining
        now = self._clock()
        whole = int(now - self._anchor)
        if whole <= 0:
            return self.remaining
        self._anchor += whole
        self.remaining = max(0, self.remaining - whole)
        if self.remaining == 0:
            self.state = TimerState.STOPPED
            self.completions += 1
            logger.debug("Rest timer finished")
            if self.on_complete is not None:
                self.on_complete()
        return self.remaining

    def adjust(self, delta: int) -> None:
        """Change the selected duration while the timer is not running."""
        if self.state is TimerState.RUNNING:
            return
        self.selected = max(MIN_REST_SECONDS, self.selected + delta)
        self.remaining = self.selected
        self.state = TimerState.STOPPED

    def select_preset(self, seconds: int) -> None:
        if self.state is TimerState.RUNNING:
            return
        if seconds not in PRESET_TIMES:
            raise ValidationError(f"unknown preset: {seconds}")
        self.selected = seconds
        self.remaining = seconds
        self.state = TimerState.STOPPED

    def to_dict(self) -> dict:
        self.tick()
        return {
            "state": self.state.value,
            "selected": self.selected,
            "remaining": self.remaining,
            "display": format_seconds(self.remaining),
            "progress": round(self.progress, 3),
        }


def format_seconds(seconds: int) -> str:
    """Return ``seconds`` as ``mm:ss``."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"

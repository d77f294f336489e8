#!/usr/bin/env python3
"""
Capture State Machine Module
Countdown / cooldown logic that decides when a photo is taken

The machine is a pure function of (state, inputs, now): timers are wall-clock
deadlines stored in the state and checked on every tick, so the caller drives
it from the frame loop and tests drive it with a fake clock.

Created: 2025
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import List, Tuple

from .log import get_logger
from .types import CaptureEvent, CapturePhase, CaptureState, TickInput

logger = get_logger(__name__)

TRIGGER_THRESHOLD = 0.80
CANCEL_THRESHOLD = 0.75
COUNTDOWN_START = 3
STEP_SECONDS = 1.0
COOLDOWN_SECONDS = 3.0


class SystemClock:
    """Monotonic wall clock used outside tests."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += float(seconds)
        return self._now

    def set(self, value: float) -> None:
        self._now = float(value)


class CaptureStateMachine:
    """Countdown, cooldown and manual-ready transitions"""

    def __init__(
        self,
        *,
        trigger_threshold: float = TRIGGER_THRESHOLD,
        cancel_threshold: float = CANCEL_THRESHOLD,
        countdown_start: int = COUNTDOWN_START,
        step_seconds: float = STEP_SECONDS,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        auto_capture: bool = True,
    ):
        """
        Initialize state machine
        Args:
            trigger_threshold: Similarity at or above which a countdown starts
            cancel_threshold: Similarity below which an active countdown or
                ready flag is dropped
            countdown_start: First number shown by the countdown
            step_seconds: Wall-clock duration of one countdown step
            cooldown_seconds: Minimum time after a capture before the next
                countdown may start
            auto_capture: Capture when the countdown ends; when False the
                machine raises the ready flag and waits for a capture request
        """
        if cancel_threshold > trigger_threshold:
            raise ValueError("cancel_threshold must not exceed trigger_threshold")
        if countdown_start < 1:
            raise ValueError("countdown_start must be at least 1")
        if step_seconds <= 0:
            raise ValueError("step_seconds must be positive")

        self.trigger_threshold = float(trigger_threshold)
        self.cancel_threshold = float(cancel_threshold)
        self.countdown_start = int(countdown_start)
        self.step_seconds = float(step_seconds)
        self.cooldown_seconds = max(0.0, float(cooldown_seconds))
        self.auto_capture = bool(auto_capture)

    def initial_state(self) -> CaptureState:
        return CaptureState()

    def advance(
        self, state: CaptureState, inputs: TickInput, now: float
    ) -> Tuple[CaptureState, Tuple[CaptureEvent, ...]]:
        """
        Advance the machine by one tick
        Args:
            state: State returned by the previous tick
            inputs: Similarity, in-range status and capture request of this tick
            now: Current wall-clock time in seconds
        Returns:
            (new_state, events emitted during this tick)
        """
        events: List[CaptureEvent] = []

        state = self._expire_cooldown(state, now, events)

        if inputs.capture_requested:
            state = self._manual_capture(state, now, events)

        if self._should_cancel(state, inputs):
            logger.info(
                "Pose lost (similarity=%.2f, in_range=%s), cancelling countdown",
                inputs.similarity,
                inputs.in_range,
            )
            state = CaptureState()
            events.append(CaptureEvent.COUNTDOWN_CANCELLED)

        if state.phase is CapturePhase.COUNTING_DOWN:
            state = self._step_countdown(state, now, events)

        captured = CaptureEvent.CAPTURE_NOW in events
        if not captured and self._should_start(state, inputs):
            logger.info("Pose matched (similarity=%.2f), starting countdown", inputs.similarity)
            state, started = self.start_countdown(state, now)
            events.extend(started)

        return state, tuple(events)

    def start_countdown(self, state: CaptureState, now: float) -> Tuple[CaptureState, Tuple[CaptureEvent, ...]]:
        """Start a countdown regardless of similarity; a no-op unless idle and not ready."""
        if state.phase is not CapturePhase.IDLE or state.ready_to_capture:
            logger.debug("Countdown already in progress, skipping")
            return state, ()
        new_state = CaptureState(
            phase=CapturePhase.COUNTING_DOWN,
            countdown=self.countdown_start,
            next_step_at=now + self.step_seconds,
        )
        return new_state, (CaptureEvent.COUNTDOWN_STARTED,)

    def reset(self) -> CaptureState:
        return CaptureState()

    # ------------------------------------------------------------------
    # Transition helpers
    # ------------------------------------------------------------------

    def _should_start(self, state: CaptureState, inputs: TickInput) -> bool:
        return (
            state.phase is CapturePhase.IDLE
            and not state.ready_to_capture
            and inputs.in_range
            and inputs.similarity >= self.trigger_threshold
        )

    def _should_cancel(self, state: CaptureState, inputs: TickInput) -> bool:
        active = state.phase is CapturePhase.COUNTING_DOWN or state.ready_to_capture
        if not active:
            return False
        return inputs.similarity < self.cancel_threshold or not inputs.in_range

    def _expire_cooldown(self, state: CaptureState, now: float, events: List[CaptureEvent]) -> CaptureState:
        if state.phase is not CapturePhase.COOLDOWN:
            return state
        if state.cooldown_remaining(now) > 0:
            return state
        logger.info("Capture cooldown ended")
        events.append(CaptureEvent.COOLDOWN_ENDED)
        return CaptureState()

    def _step_countdown(self, state: CaptureState, now: float, events: List[CaptureEvent]) -> CaptureState:
        remaining = state.countdown if state.countdown is not None else self.countdown_start
        deadline = state.next_step_at if state.next_step_at is not None else now + self.step_seconds

        # Catch up on every step that elapsed since the last tick, but never
        # past zero however long the pause was.
        while remaining > 0 and now >= deadline:
            remaining -= 1
            deadline += self.step_seconds
            if remaining > 0:
                events.append(CaptureEvent.COUNTDOWN_STEP)
                logger.debug("Countdown tick: %d", remaining)

        if remaining > 0:
            return replace(state, countdown=remaining, next_step_at=deadline)

        logger.info("Countdown finished")
        if self.auto_capture:
            logger.info("Auto capturing after countdown")
            events.append(CaptureEvent.CAPTURE_NOW)
            return self._cooldown_from(now)

        events.append(CaptureEvent.READY_TO_CAPTURE)
        return CaptureState(ready_to_capture=True)

    def _manual_capture(self, state: CaptureState, now: float, events: List[CaptureEvent]) -> CaptureState:
        if not state.ready_to_capture:
            logger.debug("Capture requested while not ready, ignoring")
            return state
        logger.info("Manual capture")
        events.append(CaptureEvent.CAPTURE_NOW)
        return self._cooldown_from(now)

    def _cooldown_from(self, now: float) -> CaptureState:
        if self.cooldown_seconds <= 0:
            return CaptureState()
        return CaptureState(phase=CapturePhase.COOLDOWN, cooldown_until=now + self.cooldown_seconds)

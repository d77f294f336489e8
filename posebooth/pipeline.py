#!/usr/bin/env python3
"""
Per-frame pipeline
Mask analysis -> distance / pose similarity -> capture state -> compositing

``process_tick`` is a pure reduction step: it takes the session state and one
(frame, mask) delivery and returns the next session state plus a TickResult.
``PoseBoothPipeline`` wraps it for a frame loop, owns the session state and
keeps the loop alive when a tick fails.

Created: 2025
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .backgrounds import BackgroundLoader
from .capture import CaptureStateMachine, SystemClock
from .compositor import FrameCompositor
from .distance import DistanceEstimator
from .log import get_logger
from .mask_analyzer import MaskAnalyzer
from .pose_similarity import PoseSimilarityScorer
from .types import (
    BackgroundSpec,
    CaptureEvent,
    CaptureState,
    DistanceSample,
    PersonDescriptor,
    TickInput,
    TickResult,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    enable_pose_matching: bool = True
    mirror_output: bool = False


@dataclass(frozen=True)
class SessionState:
    """Everything that survives from one tick to the next."""

    previous_distance: float = 0.0
    capture: CaptureState = field(default_factory=CaptureState)
    reference: Optional[PersonDescriptor] = None
    background: BackgroundSpec = field(default_factory=BackgroundSpec)
    capture_requested: bool = False


@dataclass
class PipelineComponents:
    analyzer: MaskAnalyzer
    distance: DistanceEstimator
    scorer: PoseSimilarityScorer
    capture: CaptureStateMachine
    compositor: FrameCompositor

    @classmethod
    def default(cls, mirror_output: bool = False, auto_capture: bool = True) -> "PipelineComponents":
        return cls(
            analyzer=MaskAnalyzer(),
            distance=DistanceEstimator(),
            scorer=PoseSimilarityScorer(),
            capture=CaptureStateMachine(auto_capture=auto_capture),
            compositor=FrameCompositor(mirror_output=mirror_output),
        )


def process_tick(
    session: SessionState,
    frame: np.ndarray,
    mask: Optional[np.ndarray],
    now: float,
    components: PipelineComponents,
    config: PipelineConfig = PipelineConfig(),
) -> Tuple[SessionState, TickResult]:
    """
    Run one frame through the whole pipeline
    Args:
        session: Session state returned by the previous tick
        frame: Raw BGR frame
        mask: Segmentation mask for the frame (None when the provider had none)
        now: Wall-clock time of this tick in seconds
        components: Pipeline stages
        config: Feature switches
    Returns:
        (next session state, tick result)
    """
    height, width = frame.shape[:2] if frame is not None and frame.ndim >= 2 else (0, 0)

    descriptor = components.analyzer.analyze(mask, width, height)
    sample = components.distance.update(descriptor, session.previous_distance)

    similarity = 0.0
    if config.enable_pose_matching and session.reference is not None:
        similarity = components.scorer.score(descriptor, session.reference)

    inputs = TickInput(
        similarity=similarity,
        in_range=sample.in_range,
        capture_requested=session.capture_requested,
    )
    capture_state, events = components.capture.advance(session.capture, inputs, now)

    composed = components.compositor.composite(frame, mask, session.background, capture_state, sample.in_range)

    captured = None
    if CaptureEvent.CAPTURE_NOW in events:
        captured = components.compositor.scale_to_canvas(frame)

    next_session = replace(
        session,
        previous_distance=sample.smoothed,
        capture=capture_state,
        capture_requested=False,
    )
    result = TickResult(
        frame=composed,
        distance=sample,
        similarity=similarity,
        capture_state=capture_state,
        descriptor=descriptor,
        events=events,
        captured_frame=captured,
    )
    return next_session, result


class PoseBoothPipeline:
    """Frame-loop facing wrapper around ``process_tick``"""

    def __init__(
        self,
        components: Optional[PipelineComponents] = None,
        config: Optional[PipelineConfig] = None,
        clock: Any = None,
        on_capture: Optional[Callable[[np.ndarray], None]] = None,
    ):
        """
        Initialize pipeline
        Args:
            components: Pipeline stages (defaults built when omitted)
            config: Feature switches
            clock: Object with a ``now()`` method returning seconds
            on_capture: Called with the unmasked original frame on capture
        """
        self.config = config or PipelineConfig()
        self.components = components or PipelineComponents.default(mirror_output=self.config.mirror_output)
        self.clock = clock or SystemClock()
        self.on_capture = on_capture
        self.session = SessionState()
        self.last_result: Optional[TickResult] = None
        self.frame_count = 0

    @classmethod
    def from_config(
        cls,
        config_manager,
        clock: Any = None,
        on_capture: Optional[Callable[[np.ndarray], None]] = None,
        on_background_error: Optional[Callable[[str, str], None]] = None,
    ) -> "PoseBoothPipeline":
        """Build every stage from a ConfigManager"""
        if not config_manager.validate_config():
            raise ValueError("invalid configuration")
        get = config_manager.get

        loader = BackgroundLoader(
            timeout=float(get("background_timeout", 10.0)),
            on_error=on_background_error,
        )
        components = PipelineComponents(
            analyzer=MaskAnalyzer(
                pixel_threshold=get("mask.pixel_threshold"),
                bbox_threshold=get("mask.bbox_threshold"),
            ),
            distance=DistanceEstimator(
                ladder=get("distance.ladder"),
                far_distance=get("distance.far_distance"),
                smoothing_factor=get("distance.smoothing_factor"),
                in_range_max=get("distance.in_range_max"),
            ),
            scorer=PoseSimilarityScorer(
                tolerances=get("pose.tolerances"),
                weights=get("pose.weights"),
            ),
            capture=CaptureStateMachine(
                trigger_threshold=get("capture.trigger_threshold"),
                cancel_threshold=get("capture.cancel_threshold"),
                countdown_start=get("capture.countdown_start"),
                step_seconds=get("capture.step_seconds"),
                cooldown_seconds=get("capture.cooldown_seconds"),
                auto_capture=get("capture.auto_capture"),
            ),
            compositor=FrameCompositor(
                (get("compositor.canvas_width"), get("compositor.canvas_height")),
                blur_sigma=get("compositor.blur_sigma"),
                scrim_alpha=get("compositor.scrim_alpha"),
                disc_alpha=get("compositor.disc_alpha"),
                mirror_output=get("pipeline.mirror_output"),
                loader=loader,
            ),
        )
        config = PipelineConfig(
            enable_pose_matching=bool(get("pipeline.enable_pose_matching")),
            mirror_output=bool(get("pipeline.mirror_output")),
        )
        pipeline = cls(components, config, clock=clock, on_capture=on_capture)
        pipeline.set_background(BackgroundSpec.parse(get("background")))
        return pipeline

    # ------------------------------------------------------------------
    # Collaborator inputs
    # ------------------------------------------------------------------

    def set_reference(self, descriptor: Optional[PersonDescriptor]) -> None:
        """Replace the reference pose; capture state goes back to idle"""
        self.session = replace(
            self.session,
            reference=descriptor,
            capture=self.components.capture.reset(),
            capture_requested=False,
        )
        logger.info("Reference pose %s", "set" if descriptor is not None else "cleared")

    def set_background(self, spec: BackgroundSpec) -> bool:
        """Select a background; capture state is left untouched.

        Returns False when an image background failed to load or is still
        being prefetched; frames render without substitution until it is
        available.
        """
        loader = self.components.compositor.loader
        loader.forget_failures()
        self.session = replace(self.session, background=spec)
        logger.info("Background changed to: %s", spec.label())
        if spec.url is None:
            return True
        return loader.preload(spec)

    def set_mirror_output(self, enabled: bool) -> None:
        self.config = replace(self.config, mirror_output=bool(enabled))
        self.components.compositor.mirror_output = bool(enabled)

    def request_capture(self) -> bool:
        """Queue a manual capture for the next tick; only valid while ready"""
        if not self.session.capture.ready_to_capture:
            return False
        self.session = replace(self.session, capture_requested=True)
        return True

    def restart(self) -> None:
        """Start a fresh camera session, keeping reference and background"""
        self.session = SessionState(reference=self.session.reference, background=self.session.background)
        self.last_result = None

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def on_frame(self, frame: np.ndarray, mask: Optional[np.ndarray]) -> TickResult:
        """Process one (frame, mask) delivery; never raises"""
        self.frame_count += 1
        try:
            self.session, result = process_tick(
                self.session,
                frame,
                mask,
                self.clock.now(),
                self.components,
                self.config,
            )
        except Exception as exc:
            logger.exception("Frame %d failed, redrawing last good frame", self.frame_count)
            return self._recovered_result(frame, exc)

        self.last_result = result
        if result.captured_frame is not None and self.on_capture is not None:
            try:
                self.on_capture(result.captured_frame)
            except Exception:
                logger.exception("Capture handler failed")
        return result

    def _recovered_result(self, frame: np.ndarray, exc: Exception) -> TickResult:
        previous = self.last_result
        if previous is not None:
            output = previous.frame
        else:
            try:
                output = self.components.compositor.scale_to_canvas(frame)
            except Exception:
                width, height = self.components.compositor.canvas_size
                output = np.zeros((height, width, 3), dtype=np.uint8)

        distance = previous.distance if previous is not None else DistanceSample(0.0, 0.0, False)
        return TickResult(
            frame=output,
            distance=distance,
            similarity=previous.similarity if previous is not None else 0.0,
            capture_state=self.session.capture,
            error=str(exc) or exc.__class__.__name__,
        )

    # ------------------------------------------------------------------
    # Readouts
    # ------------------------------------------------------------------

    @property
    def capture_state(self) -> CaptureState:
        return self.session.capture

    @property
    def reference(self) -> Optional[PersonDescriptor]:
        return self.session.reference

    @property
    def background(self) -> BackgroundSpec:
        return self.session.background

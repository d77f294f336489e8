"""Shared data structures passed between the per-frame pipeline stages."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class PersonDescriptor:
    """Coarse silhouette statistics derived from one segmentation mask.

    Bounding-box extents are inclusive pixel indices. Every ratio except
    ``aspect_ratio`` (bbox height / bbox width) lies in [0, 1].
    """

    min_x: int
    max_x: int
    min_y: int
    max_y: int
    pixel_ratio: float
    bounding_box_ratio: float
    aspect_ratio: float
    relative_center_x: float
    relative_center_y: float
    area_ratio: float
    foreground_pixels: int = 0
    width: int = 0
    height: int = 0

    @property
    def effective_ratio(self) -> float:
        return max(self.pixel_ratio, self.bounding_box_ratio)

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        """Bounding box as ``(x, y, w, h)``."""
        return (
            self.min_x,
            self.min_y,
            self.max_x - self.min_x + 1,
            self.max_y - self.min_y + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonDescriptor":
        return cls(
            min_x=int(data["min_x"]),
            max_x=int(data["max_x"]),
            min_y=int(data["min_y"]),
            max_y=int(data["max_y"]),
            pixel_ratio=float(data["pixel_ratio"]),
            bounding_box_ratio=float(data["bounding_box_ratio"]),
            aspect_ratio=float(data["aspect_ratio"]),
            relative_center_x=float(data["relative_center_x"]),
            relative_center_y=float(data["relative_center_y"]),
            area_ratio=float(data["area_ratio"]),
            foreground_pixels=int(data.get("foreground_pixels", 0)),
            width=int(data.get("width", 0)),
            height=int(data.get("height", 0)),
        )


@dataclass(frozen=True)
class DistanceSample:
    raw: float
    smoothed: float
    in_range: bool


class BackgroundKind(Enum):
    NONE = "none"
    BLUR = "blur"
    IMAGE = "image"


@dataclass(frozen=True)
class BackgroundSpec:
    """What to show behind the subject. ``url`` is only set for ``IMAGE``."""

    kind: BackgroundKind = BackgroundKind.NONE
    url: Optional[str] = None

    @classmethod
    def none(cls) -> "BackgroundSpec":
        return cls(BackgroundKind.NONE)

    @classmethod
    def blur(cls) -> "BackgroundSpec":
        return cls(BackgroundKind.BLUR)

    @classmethod
    def image(cls, url: str) -> "BackgroundSpec":
        return cls(BackgroundKind.IMAGE, url)

    @classmethod
    def parse(cls, value: Optional[str]) -> "BackgroundSpec":
        """Build a spec from ``none``/``blur``, a preset name, a path or a URL."""
        from .backgrounds import parse_background

        return parse_background(value)

    def label(self) -> str:
        if self.kind is BackgroundKind.IMAGE:
            return str(self.url)
        return self.kind.value


class CapturePhase(Enum):
    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class CaptureState:
    """Capture state machine snapshot.

    ``countdown`` and ``next_step_at`` are only set while counting down,
    ``cooldown_until`` only during cooldown. ``ready_to_capture`` is the
    manual-flow flag and only ever accompanies ``IDLE``.
    """

    phase: CapturePhase = CapturePhase.IDLE
    countdown: Optional[int] = None
    next_step_at: Optional[float] = None
    cooldown_until: Optional[float] = None
    ready_to_capture: bool = False

    @property
    def is_counting_down(self) -> bool:
        return self.phase is CapturePhase.COUNTING_DOWN

    @property
    def in_cooldown(self) -> bool:
        return self.phase is CapturePhase.COOLDOWN

    def cooldown_remaining(self, now: float) -> float:
        if self.cooldown_until is None:
            return 0.0
        return max(0.0, self.cooldown_until - now)


class CaptureEvent(Enum):
    COUNTDOWN_STARTED = "countdown_started"
    COUNTDOWN_STEP = "countdown_step"
    COUNTDOWN_CANCELLED = "countdown_cancelled"
    READY_TO_CAPTURE = "ready_to_capture"
    CAPTURE_NOW = "capture_now"
    COOLDOWN_ENDED = "cooldown_ended"


@dataclass(frozen=True)
class TickInput:
    similarity: float = 0.0
    in_range: bool = False
    capture_requested: bool = False


@dataclass
class TickResult:
    """Everything the frame loop gets back from one processed tick."""

    frame: np.ndarray
    distance: DistanceSample
    similarity: float
    capture_state: CaptureState
    descriptor: Optional[PersonDescriptor] = None
    events: Tuple[CaptureEvent, ...] = ()
    captured_frame: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def capture_now(self) -> bool:
        return CaptureEvent.CAPTURE_NOW in self.events

    @property
    def in_range(self) -> bool:
        return self.distance.in_range

    @property
    def ready_to_capture(self) -> bool:
        return self.capture_state.ready_to_capture

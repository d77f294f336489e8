from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np


class SegmentationProvider(ABC):
    """
    Model adapter interface.

    Implementations take a BGR frame (H,W,3 uint8) and return an HxW float32
    foreground probability map in [0,1] aligned with the frame, or None when
    the model produced nothing for this frame.
    """

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def segment(self, frame_bgr: np.ndarray) -> Optional[np.ndarray]: ...

    def close(self) -> None:
        return None

    def __enter__(self) -> "SegmentationProvider":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class StaticMaskProvider(SegmentationProvider):
    """Returns the same mask for every frame (replays, tests, fixed cut-outs)."""

    def __init__(self, mask: Optional[np.ndarray]) -> None:
        self._mask = None if mask is None else np.asarray(mask)

    def name(self) -> str:
        return "static"

    def segment(self, frame_bgr: np.ndarray) -> Optional[np.ndarray]:
        return self._mask

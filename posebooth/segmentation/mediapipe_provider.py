from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .base import SegmentationProvider


class MediaPipeSelfieSegmenter(SegmentationProvider):
    """
    MediaPipe Selfie Segmentation provider.

    Notes:
    - MediaPipe expects RGB input; frames are converted from BGR here.
    - model_selection=1 is the landscape model, suited to 16:9 webcams.
    """

    def __init__(self, model_selection: int = 1) -> None:
        try:
            import mediapipe as mp  # type: ignore
        except ImportError as e:
            raise RuntimeError(
                "MediaPipe is not installed. Install segmentation deps with: pip install 'posebooth[segmentation]'"
            ) from e

        self._segmenter = mp.solutions.selfie_segmentation.SelfieSegmentation(
            model_selection=int(model_selection),
        )

    def name(self) -> str:
        return "mediapipe_selfie"

    def segment(self, frame_bgr: np.ndarray) -> Optional[np.ndarray]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        res = self._segmenter.process(rgb)
        mask = getattr(res, "segmentation_mask", None) if res is not None else None
        if mask is None:
            return None
        return np.clip(np.asarray(mask, dtype=np.float32), 0.0, 1.0)

    def close(self) -> None:
        if self._segmenter is not None:
            self._segmenter.close()
            self._segmenter = None

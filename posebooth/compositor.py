#!/usr/bin/env python3
"""
Frame Compositor Module
Renders the displayable frame: background substitution or blur, subject
cutout through the segmentation mask, and the countdown overlay

Created: 2025
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from .backgrounds import BackgroundLoader
from .mask_analyzer import to_alpha
from .types import BackgroundKind, BackgroundSpec, CaptureState

CANVAS_SIZE: Tuple[int, int] = (1280, 720)
BLUR_SIGMA = 8.0
SCRIM_ALPHA = 0.5
DISC_ALPHA = 0.6
DISC_SCALE = 0.18


class FrameCompositor:
    """Composites subject, background and overlay onto a fixed-size canvas"""

    def __init__(
        self,
        canvas_size: Tuple[int, int] = CANVAS_SIZE,
        *,
        blur_sigma: float = BLUR_SIGMA,
        scrim_alpha: float = SCRIM_ALPHA,
        disc_alpha: float = DISC_ALPHA,
        mirror_output: bool = False,
        loader: Optional[BackgroundLoader] = None,
    ):
        """
        Initialize compositor
        Args:
            canvas_size: Output (width, height); every frame is scaled to it
            blur_sigma: Gaussian standard deviation of the blur background
            scrim_alpha: Opacity of the black scrim behind the countdown
            disc_alpha: Opacity of the disc behind the countdown digit
            mirror_output: Flip the displayed frame horizontally
            loader: Source of background images for IMAGE specs
        """
        width, height = int(canvas_size[0]), int(canvas_size[1])
        if width <= 0 or height <= 0:
            raise ValueError("canvas size must be positive")
        self.canvas_size = (width, height)
        self.blur_sigma = float(blur_sigma)
        self.scrim_alpha = float(scrim_alpha)
        self.disc_alpha = float(disc_alpha)
        self.mirror_output = bool(mirror_output)
        self.loader = loader or BackgroundLoader()
        self._scaled_background: Optional[Tuple[np.ndarray, np.ndarray]] = None

    def scale_to_canvas(self, frame: np.ndarray) -> np.ndarray:
        """Raw frame resized to the canvas as 3-channel BGR (always a new array)"""
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

        width, height = self.canvas_size
        if frame.shape[1] == width and frame.shape[0] == height:
            return frame.copy()
        return cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)

    def composite(
        self,
        frame: np.ndarray,
        mask: Optional[np.ndarray],
        background: BackgroundSpec,
        capture_state: Optional[CaptureState] = None,
        in_range: bool = False,
    ) -> np.ndarray:
        """
        Render one output frame
        Args:
            frame: Raw BGR camera frame at source resolution
            mask: Segmentation mask aligned with the frame
            background: Selected background
            capture_state: Current capture state; an active countdown is drawn
            in_range: Whether the subject is close enough for substitution
        Returns:
            BGR frame at canvas resolution
        """
        base = self.scale_to_canvas(frame)
        output = base

        layer = self._background_layer(base, background) if in_range and mask is not None else None
        if layer is not None:
            width, height = self.canvas_size
            alpha = to_alpha(mask, width, height)[:, :, np.newaxis]
            blended = base.astype(np.float32) * alpha + layer.astype(np.float32) * (1.0 - alpha)
            output = np.clip(blended, 0, 255).astype(np.uint8)

        if self.mirror_output:
            output = cv2.flip(output, 1)

        if capture_state is not None and capture_state.is_counting_down and capture_state.countdown is not None:
            self.draw_countdown(output, capture_state.countdown)

        return output

    def _background_layer(self, base: np.ndarray, background: BackgroundSpec) -> Optional[np.ndarray]:
        if background.kind is BackgroundKind.BLUR:
            return cv2.GaussianBlur(base, (0, 0), sigmaX=self.blur_sigma, sigmaY=self.blur_sigma)
        if background.kind is BackgroundKind.IMAGE:
            image = self.loader.get(background)
            if image is None:
                return None
            return self._scale_background(image)
        return None

    def _scale_background(self, image: np.ndarray) -> np.ndarray:
        # Cache keyed on the source array object.
        if self._scaled_background is not None and self._scaled_background[0] is image:
            return self._scaled_background[1]
        scaled = self.scale_to_canvas(image)
        self._scaled_background = (image, scaled)
        return scaled

    def draw_countdown(self, frame: np.ndarray, count: int) -> None:
        """Dim the frame and draw the countdown digit in its centre (in place)"""
        height, width = frame.shape[:2]

        frame[:] = (frame.astype(np.float32) * (1.0 - self.scrim_alpha)).astype(np.uint8)

        center = (width // 2, height // 2)
        radius = int(min(width, height) * DISC_SCALE)
        disc = frame.copy()
        cv2.circle(disc, center, radius, (0, 0, 0), -1, lineType=cv2.LINE_AA)
        cv2.addWeighted(disc, self.disc_alpha, frame, 1.0 - self.disc_alpha, 0, dst=frame)

        text = str(int(count))
        font = cv2.FONT_HERSHEY_DUPLEX
        glyph_height = min(width, height) * DISC_SCALE
        (_, base_height), _ = cv2.getTextSize(text, font, 1.0, 2)
        font_scale = glyph_height / float(max(base_height, 1))
        thickness = max(2, int(round(font_scale * 2)))
        (text_w, text_h), _ = cv2.getTextSize(text, font, font_scale, thickness)
        origin = (center[0] - text_w // 2, center[1] + text_h // 2)

        cv2.putText(frame, text, origin, font, font_scale, (0, 0, 0), thickness + 10, cv2.LINE_AA)
        cv2.putText(frame, text, origin, font, font_scale, (255, 255, 255), thickness, cv2.LINE_AA)

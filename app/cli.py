#!/usr/bin/env python3
"""CLI entry point for the Pose Booth application."""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np

from posebooth.backgrounds import PRESET_BACKGROUNDS, next_background, parse_background
from posebooth.capture import SystemClock
from posebooth.config_manager import ConfigManager
from posebooth.log import set_level
from posebooth.pipeline import PoseBoothPipeline
from posebooth.reference import load_reference
from posebooth.segmentation import SegmentationProvider, create_provider
from posebooth.types import TickResult

WINDOW_NAME = "Pose Booth"


class CaptureExporter:
    """Writes captured frames to disk as photo_<epoch-ms>.png."""

    def __init__(self, output_directory: str) -> None:
        self.output_directory = Path(output_directory)
        self.saved: List[Path] = []

    def __call__(self, frame: np.ndarray) -> None:
        self.output_directory.mkdir(parents=True, exist_ok=True)
        path = self.output_directory / f"photo_{int(time.time() * 1000)}.png"
        if not cv2.imwrite(str(path), frame):
            print(f"❌ Error capturing photo: could not write {path}", file=sys.stderr)
            return
        self.saved.append(path)
        print(f"✅ Photo captured: {path}")


class PoseBoothApp:
    """Camera session: segmentation provider + pipeline + status readout."""

    def __init__(
        self,
        config: ConfigManager,
        provider: SegmentationProvider,
        exporter: Optional[CaptureExporter] = None,
        clock=None,
        prefetch_presets: bool = False,
    ) -> None:
        self.config = config
        self.provider = provider
        self.exporter = exporter or CaptureExporter(config.get("output_directory", "captures"))
        self.background_errors: List[str] = []
        self.pipeline = PoseBoothPipeline.from_config(
            config,
            clock=clock or SystemClock(),
            on_capture=self.exporter,
            on_background_error=self._on_background_error,
        )
        self.fps_buffer = [0.0] * 16
        self.fps_index = 0

        if prefetch_presets:
            # A preset still downloading renders as no background.
            loader = self.pipeline.components.compositor.loader
            loader.prefetch(parse_background(name) for name in PRESET_BACKGROUNDS)

        reference_image = config.get("reference_image")
        if reference_image:
            self.load_reference(reference_image)

    def _on_background_error(self, url: str, message: str) -> None:
        self.background_errors.append(message)
        print(f"⚠️ {message}", file=sys.stderr)

    def load_reference(self, path: str) -> bool:
        if not os.path.exists(path):
            print(f"❌ Reference image not found: {path}", file=sys.stderr)
            return False
        try:
            descriptor = load_reference(path, self.provider, self.pipeline.components.analyzer)
        except (OSError, ValueError, KeyError) as exc:
            print(f"❌ Failed to load reference pose: {exc}", file=sys.stderr)
            return False
        if descriptor is None:
            print("❌ No person found in the reference image", file=sys.stderr)
            return False
        self.pipeline.set_reference(descriptor)
        print(f"🎯 Reference pose loaded from {path}")
        return True

    def process_frame(self, frame: np.ndarray) -> TickResult:
        mask = self.provider.segment(frame)
        result = self.pipeline.on_frame(frame, mask)
        if result.error:
            print(f"⚠️ Frame skipped: {result.error}", file=sys.stderr)
        return result

    def handle_key(self, key: int) -> bool:
        """React to a key press. Returns False when the app should quit."""
        if key == ord("q"):
            return False
        if key == ord("c"):
            if self.pipeline.request_capture():
                print("📸 Capture requested")
            else:
                print("Not ready to capture yet")
        elif key == ord("b"):
            spec = next_background(self.pipeline.background)
            if self.pipeline.set_background(spec):
                self.background_errors.clear()
            print(f"Background: {spec.label()}")
        elif key == ord("r"):
            reference = self.config.get("reference_image")
            if reference:
                self.load_reference(reference)
        elif key == ord("m"):
            self.pipeline.set_mirror_output(not self.pipeline.config.mirror_output)
        return True

    def status_lines(self, result: TickResult) -> List[str]:
        marker = "in range" if result.in_range else "too far"
        lines = [f"Distance: {result.distance.smoothed:.1f}m ({marker})"]
        if self.pipeline.reference is not None:
            lines.append(f"Pose match: {result.similarity * 100:.0f}%")
        lines.append(self.status_hint(result))
        if self.background_errors:
            lines.append(self.background_errors[-1])
        return lines

    def draw_status(self, frame: np.ndarray, result: TickResult) -> None:
        font = cv2.FONT_HERSHEY_SIMPLEX
        color = (180, 180, 0)
        y_offset = 50
        for line in self.status_lines(result):
            cv2.putText(frame, line, (10, y_offset), font, 0.6, color, 2)
            y_offset += 22

    def status_hint(self, result: TickResult) -> str:
        state = result.capture_state
        if state.is_counting_down:
            return "Hold the pose!"
        if state.ready_to_capture:
            return "Perfect pose! Press 'c' to capture"
        if state.in_cooldown:
            return "Photo taken"
        if not result.in_range:
            return "Move closer (<= 1m)"
        if self.pipeline.reference is None:
            return "Load a reference pose to enable auto capture"
        return "Auto countdown starts at 80% match"

    def update_fps(self, fps: float) -> None:
        self.fps_buffer[self.fps_index] = fps
        self.fps_index = (self.fps_index + 1) % len(self.fps_buffer)

    def get_average_fps(self) -> float:
        return sum(self.fps_buffer) / len(self.fps_buffer)

    def close(self) -> None:
        self.provider.close()


def build_config(args: argparse.Namespace) -> ConfigManager:
    config = ConfigManager(args.config)
    overrides: Dict[str, object] = {
        "background": args.background,
        "reference_image": args.reference,
        "output_directory": args.output_dir,
        "capture.cooldown_seconds": args.cooldown,
        "log_level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            config.set(key, value)
    if args.manual:
        config.set("capture.auto_capture", False)
    if args.mirror:
        config.set("pipeline.mirror_output", True)
    if args.no_pose:
        config.set("pipeline.enable_pose_matching", False)
    return config


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Pose Booth - segmentation-driven photo booth with pose-matched auto capture",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("input", type=str, nargs="?", default="0", help="Input source (webcam index or video file)")
    parser.add_argument("--config", type=str, help="Configuration file path")
    parser.add_argument("--reference", type=str, help="Reference pose image, mask or saved descriptor (.json)")
    parser.add_argument(
        "--background",
        type=str,
        help="none, blur, a preset (office, beach, forest, city, space), an image path or a URL",
    )
    parser.add_argument("--output-dir", type=str, help="Directory captured photos are written to")
    parser.add_argument("--cooldown", type=float, help="Seconds after a capture before the next countdown")
    parser.add_argument("--manual", action="store_true", help="Wait for 'c' after the countdown instead of auto capturing")
    parser.add_argument("--mirror", action="store_true", help="Mirror the live view")
    parser.add_argument("--no-pose", action="store_true", help="Disable pose matching (background effects only)")
    parser.add_argument("--log-level", type=str, help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--print-config", action="store_true", help="Print the effective configuration and exit")

    args = parser.parse_args()
    config = build_config(args)
    set_level(config.get("log_level", "INFO"))

    if args.print_config:
        config.print_config()
        return

    try:
        provider = create_provider("mediapipe")
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        app = PoseBoothApp(config, provider, prefetch_presets=True)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        provider.close()
        sys.exit(1)

    input_source = args.input
    is_camera = input_source.isdigit()
    cap = cv2.VideoCapture(int(input_source) if is_camera else input_source)
    if not cap.isOpened():
        print(f"Error: Could not open input source: {input_source}")
        app.close()
        return
    if is_camera:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(config.get("camera.width", 1280)))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(config.get("camera.height", 720)))

    print("Pose Booth started. Keys: q quit, c capture, b background, r reload reference, m mirror.")

    try:
        while True:
            start_time = time.time()
            ret, frame = cap.read()
            if not ret:
                print("Error reading from camera" if is_camera else "End of video file reached")
                break

            result = app.process_frame(frame)
            output = result.frame.copy()
            app.draw_status(output, result)

            end_time = time.time()
            fps = 1.0 / (end_time - start_time) if end_time > start_time else 0
            app.update_fps(fps)
            cv2.putText(output, f"FPS: {app.get_average_fps():.1f}", (10, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 255, 0), 2)

            cv2.imshow(WINDOW_NAME, output)

            key = cv2.waitKey(1) & 0xFF
            if not app.handle_key(key):
                break

    except KeyboardInterrupt:
        print("Interrupted by user")

    finally:
        cap.release()
        cv2.destroyAllWindows()
        app.close()
        print(f"Pose Booth stopped ({len(app.exporter.saved)} photo(s) saved)")


if __name__ == "__main__":
    main()

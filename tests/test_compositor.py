import cv2
import numpy as np
import pytest

from posebooth.backgrounds import BackgroundLoader
from posebooth.compositor import FrameCompositor
from posebooth.types import BackgroundSpec, CapturePhase, CaptureState

CANVAS = (64, 48)


@pytest.fixture
def compositor():
    return FrameCompositor(CANVAS)


def scaled(frame):
    return cv2.resize(frame, CANVAS, interpolation=cv2.INTER_LINEAR)


def counting(count):
    return CaptureState(phase=CapturePhase.COUNTING_DOWN, countdown=count, next_step_at=1.0)


@pytest.mark.parametrize("mask_value", [None, 0, 255, 140])
def test_no_background_returns_scaled_raw_frame(compositor, random_frame, mask_value):
    frame = random_frame(24, 32)
    mask = None if mask_value is None else np.full((24, 32), mask_value, dtype=np.uint8)

    out = compositor.composite(frame, mask, BackgroundSpec.none(), CaptureState(), in_range=True)

    assert out.shape == (48, 64, 3)
    assert np.array_equal(out, scaled(frame))


def test_output_is_always_canvas_sized(compositor, random_frame):
    for h, w in ((24, 32), (48, 64), (120, 200), (7, 5)):
        out = compositor.composite(random_frame(h, w), None, BackgroundSpec.none())
        assert out.shape == (48, 64, 3)


def test_canvas_sized_frame_is_copied(compositor, random_frame):
    frame = random_frame(48, 64)
    out = compositor.composite(frame, None, BackgroundSpec.none())
    assert np.array_equal(out, frame)
    assert out is not frame


def test_out_of_range_skips_background(compositor, random_frame):
    frame = random_frame(48, 64)
    mask = np.zeros((48, 64), dtype=np.uint8)

    out = compositor.composite(frame, mask, BackgroundSpec.blur(), CaptureState(), in_range=False)

    assert np.array_equal(out, frame)


def test_blur_keeps_subject_and_blurs_the_rest(compositor, random_frame):
    frame = random_frame(48, 64)
    mask = np.zeros((48, 64), dtype=np.uint8)
    mask[:, :32] = 255
    blurred = cv2.GaussianBlur(frame, (0, 0), sigmaX=8.0, sigmaY=8.0)

    out = compositor.composite(frame, mask, BackgroundSpec.blur(), CaptureState(), in_range=True)

    assert np.array_equal(out[:, :32], frame[:, :32])
    assert np.array_equal(out[:, 32:], blurred[:, 32:])


def test_image_background_fills_non_subject_area(tmp_path, random_frame):
    bg = np.zeros((30, 40, 3), dtype=np.uint8)
    bg[:] = (10, 200, 30)
    path = tmp_path / "bg.png"
    cv2.imwrite(str(path), bg)
    compositor = FrameCompositor(CANVAS, loader=BackgroundLoader())
    frame = random_frame(48, 64)
    mask = np.zeros((48, 64), dtype=np.uint8)

    out = compositor.composite(frame, mask, BackgroundSpec.image(str(path)), CaptureState(), in_range=True)

    assert (out == np.array([10, 200, 30], dtype=np.uint8)).all()


def test_unloadable_background_falls_back_to_raw_frame(tmp_path, random_frame):
    loader = BackgroundLoader()
    compositor = FrameCompositor(CANVAS, loader=loader)
    frame = random_frame(48, 64)
    mask = np.zeros((48, 64), dtype=np.uint8)
    spec = BackgroundSpec.image(str(tmp_path / "missing.png"))

    out = compositor.composite(frame, mask, spec, CaptureState(), in_range=True)

    assert np.array_equal(out, frame)
    assert loader.last_error is not None


def test_countdown_overlay_dims_and_draws_digit(compositor):
    frame = np.full((48, 64, 3), 200, dtype=np.uint8)

    out = compositor.composite(frame, None, BackgroundSpec.none(), counting(3))

    assert np.array_equal(out[0, 0], np.array([100, 100, 100], dtype=np.uint8))
    assert out.mean() < frame.mean()
    assert (out[12:36, 16:48] >= 250).any()


def test_countdown_overlay_is_drawn_over_background(compositor):
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    mask = np.zeros((48, 64), dtype=np.uint8)

    plain = compositor.composite(frame, mask, BackgroundSpec.blur(), CaptureState(), in_range=True)
    overlaid = compositor.composite(frame, mask, BackgroundSpec.blur(), counting(1), in_range=True)

    assert not plain.any()
    assert (overlaid >= 250).any()


@pytest.mark.parametrize(
    "state",
    [
        CaptureState(),
        CaptureState(ready_to_capture=True),
        CaptureState(phase=CapturePhase.COOLDOWN, cooldown_until=5.0),
    ],
)
def test_no_overlay_without_active_countdown(compositor, random_frame, state):
    frame = random_frame(48, 64)
    out = compositor.composite(frame, None, BackgroundSpec.none(), state)
    assert np.array_equal(out, frame)


def test_mirror_output_flips_horizontally(random_frame):
    compositor = FrameCompositor(CANVAS, mirror_output=True)
    frame = random_frame(48, 64)

    out = compositor.composite(frame, None, BackgroundSpec.none())

    assert np.array_equal(out, frame[:, ::-1])


def test_grayscale_and_bgra_frames_are_accepted(compositor):
    gray = np.full((48, 64), 90, dtype=np.uint8)
    bgra = np.full((48, 64, 4), 90, dtype=np.uint8)

    assert compositor.scale_to_canvas(gray).shape == (48, 64, 3)
    assert compositor.scale_to_canvas(bgra).shape == (48, 64, 3)


def test_invalid_canvas_is_rejected():
    with pytest.raises(ValueError):
        FrameCompositor((0, 720))


def test_reloaded_background_replaces_cached_scaling(tmp_path, random_frame):
    path = tmp_path / "bg.png"
    spec = BackgroundSpec.image(str(path))
    loader = BackgroundLoader()
    compositor = FrameCompositor(CANVAS, loader=loader)
    frame = random_frame(48, 64)
    mask = np.zeros((48, 64), dtype=np.uint8)

    red = np.zeros((30, 40, 3), dtype=np.uint8)
    red[:] = (0, 0, 255)
    cv2.imwrite(str(path), red)
    first = compositor.composite(frame, mask, spec, CaptureState(), in_range=True)

    blue = np.zeros((30, 40, 3), dtype=np.uint8)
    blue[:] = (255, 0, 0)
    cv2.imwrite(str(path), blue)
    loader.retry(spec)
    second = compositor.composite(frame, mask, spec, CaptureState(), in_range=True)

    assert (first == np.array([0, 0, 255], dtype=np.uint8)).all()
    assert (second == np.array([255, 0, 0], dtype=np.uint8)).all()

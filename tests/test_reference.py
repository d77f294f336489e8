import cv2
import numpy as np
import pytest

from posebooth.mask_analyzer import MaskAnalyzer
from posebooth.reference import (
    describe_reference_image,
    describe_reference_mask,
    load_descriptor,
    load_reference,
    save_descriptor,
)
from posebooth.segmentation import StaticMaskProvider, create_provider


@pytest.fixture
def subject_mask(box_mask):
    return box_mask(40, 60, (10, 5, 29, 34))


def test_grayscale_mask_png(tmp_path, subject_mask):
    path = tmp_path / "pose.png"
    cv2.imwrite(str(path), subject_mask)

    descriptor = describe_reference_mask(str(path))

    assert descriptor == MaskAnalyzer().analyze(subject_mask, 60, 40)
    assert descriptor.bbox == (10, 5, 20, 30)


def test_alpha_channel_is_used_as_occupancy(tmp_path, subject_mask):
    rgba = np.zeros((40, 60, 4), dtype=np.uint8)
    rgba[:, :, :3] = 255
    rgba[:, :, 3] = subject_mask
    path = tmp_path / "cutout.png"
    cv2.imwrite(str(path), rgba)

    descriptor = describe_reference_mask(path)

    assert descriptor.bbox == (10, 5, 20, 30)


def test_reference_photo_goes_through_provider(random_frame, subject_mask):
    photo = random_frame(40, 60)
    descriptor = describe_reference_image(photo, StaticMaskProvider(subject_mask))
    assert descriptor.relative_center_x == pytest.approx(20 / 60)
    assert descriptor.relative_center_y == pytest.approx(20 / 40)


def test_reference_photo_without_person(random_frame):
    provider = StaticMaskProvider(np.zeros((40, 60), dtype=np.float32))
    assert describe_reference_image(random_frame(40, 60), provider) is None


def test_descriptor_json_file(tmp_path, subject_mask):
    descriptor = MaskAnalyzer().analyze(subject_mask, 60, 40)
    path = tmp_path / "refs" / "pose.json"

    save_descriptor(descriptor, path)

    assert load_descriptor(path) == descriptor
    assert load_reference(str(path)) == descriptor


def test_load_reference_dispatches_on_provider(tmp_path, random_frame, subject_mask):
    photo_path = tmp_path / "photo.png"
    cv2.imwrite(str(photo_path), random_frame(40, 60))

    via_provider = load_reference(photo_path, StaticMaskProvider(subject_mask))
    assert via_provider.bbox == (10, 5, 20, 30)

    mask_path = tmp_path / "mask.png"
    cv2.imwrite(str(mask_path), subject_mask)
    assert load_reference(mask_path).bbox == (10, 5, 20, 30)


def test_missing_reference_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_reference(tmp_path / "absent.png")


def test_unknown_provider_name():
    with pytest.raises(ValueError):
        create_provider("does-not-exist")

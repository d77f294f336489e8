import base64
import threading

import cv2
import numpy as np
import pytest

from posebooth.backgrounds import (
    PRESET_BACKGROUNDS,
    BackgroundLoader,
    next_background,
    parse_background,
)
from posebooth.types import BackgroundKind, BackgroundSpec


def png_bytes(color=(0, 0, 255), size=(8, 6)):
    image = np.zeros((size[1], size[0], 3), dtype=np.uint8)
    image[:] = color
    ok, buf = cv2.imencode(".png", image)
    assert ok
    return buf.tobytes()


@pytest.mark.parametrize("value", [None, "", "none", "  NONE "])
def test_parse_none(value):
    assert parse_background(value) == BackgroundSpec.none()


def test_parse_blur():
    assert parse_background("Blur").kind is BackgroundKind.BLUR


def test_parse_preset_name():
    spec = parse_background("beach")
    assert spec.kind is BackgroundKind.IMAGE
    assert spec.url == PRESET_BACKGROUNDS["beach"]


def test_parse_custom_path_and_url():
    assert parse_background("/tmp/bg.jpg") == BackgroundSpec.image("/tmp/bg.jpg")
    assert parse_background("https://example.com/a.png").url == "https://example.com/a.png"


def test_parse_via_spec_classmethod():
    assert BackgroundSpec.parse("blur") == BackgroundSpec.blur()


def test_parse_rejects_non_strings():
    with pytest.raises(TypeError):
        parse_background(42)


def test_next_background_cycles():
    spec = BackgroundSpec.none()
    spec = next_background(spec)
    assert spec == BackgroundSpec.blur()
    spec = next_background(spec)
    assert spec.url == PRESET_BACKGROUNDS["office"]

    last = parse_background("space")
    assert next_background(last) == BackgroundSpec.none()
    assert next_background(BackgroundSpec.image("custom.png")) == BackgroundSpec.none()


def test_loader_decodes_data_url():
    url = "data:image/png;base64," + base64.b64encode(png_bytes()).decode("ascii")
    image = BackgroundLoader().get(BackgroundSpec.image(url))
    assert image.shape == (6, 8, 3)
    assert tuple(image[0, 0]) == (0, 0, 255)


def test_loader_fetches_remote_images_once():
    calls = []

    def fetcher(url, timeout):
        calls.append((url, timeout))
        return png_bytes()

    loader = BackgroundLoader(fetcher=fetcher, timeout=2.0)
    spec = BackgroundSpec.image("https://example.com/bg.png")

    assert loader.get(spec) is not None
    assert loader.get(spec) is not None
    assert calls == [("https://example.com/bg.png", 2.0)]


def test_loader_reports_failures_and_caches_them():
    errors = []
    calls = []

    def fetcher(url, timeout):
        calls.append(url)
        raise OSError("connection refused")

    loader = BackgroundLoader(fetcher=fetcher, on_error=lambda url, msg: errors.append((url, msg)))
    spec = BackgroundSpec.image("https://example.com/down.png")

    assert loader.get(spec) is None
    assert loader.get(spec) is None
    assert len(calls) == 1
    assert errors and errors[0][0] == spec.url
    assert "connection refused" in loader.last_error

    assert loader.retry(spec) is None
    assert len(calls) == 2


def test_loader_recovers_after_failure_is_forgotten():
    responses = [OSError("offline"), png_bytes()]

    def fetcher(url, timeout):
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    loader = BackgroundLoader(fetcher=fetcher)
    spec = BackgroundSpec.image("https://example.com/flaky.png")

    assert loader.get(spec) is None
    loader.forget_failures()
    assert loader.get(spec) is not None
    assert loader.last_error is None


def test_loader_rejects_garbage():
    loader = BackgroundLoader()
    assert loader.get(BackgroundSpec.image("data:image/png,notbase64")) is None
    assert loader.get(BackgroundSpec.image("data:image/png;base64," + base64.b64encode(b"junk").decode())) is None


def test_loader_ignores_non_image_specs():
    loader = BackgroundLoader()
    assert loader.get(BackgroundSpec.none()) is None
    assert loader.get(BackgroundSpec.blur()) is None


def test_prefetch_runs_off_the_calling_thread():
    release = threading.Event()

    def fetcher(url, timeout):
        release.wait(5.0)
        return png_bytes()

    loader = BackgroundLoader(fetcher=fetcher)
    spec = BackgroundSpec.image("https://example.com/slow.png")

    threads = loader.prefetch([spec, BackgroundSpec.blur(), spec])
    assert len(threads) == 1
    assert loader.get(spec) is None

    release.set()
    threads[0].join(5.0)

    assert loader.get(spec) is not None
    assert loader.prefetch([spec]) == []


def test_prefetch_failure_is_reported():
    errors = []

    def fetcher(url, timeout):
        raise OSError("no route to host")

    loader = BackgroundLoader(fetcher=fetcher, on_error=lambda url, msg: errors.append(url))
    spec = BackgroundSpec.image("https://example.com/unreachable.png")

    for thread in loader.prefetch([spec]):
        thread.join(5.0)

    assert errors == [spec.url]
    assert loader.get(spec) is None

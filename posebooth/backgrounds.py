"""Background selection: preset catalog, spec parsing and image loading."""

from __future__ import annotations

import base64
import os
import threading
import urllib.request
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

import cv2
import numpy as np

from .log import get_logger
from .types import BackgroundKind, BackgroundSpec

logger = get_logger(__name__)

PRESET_BACKGROUNDS: Dict[str, str] = {
    "office": "https://images.unsplash.com/photo-1497366216548-37526070297c?w=1920&h=1080&fit=crop",
    "beach": "https://images.unsplash.com/photo-1507525428034-b723cf961d3e?w=1920&h=1080&fit=crop",
    "forest": "https://images.unsplash.com/photo-1441974231531-c6227db76b6e?w=1920&h=1080&fit=crop",
    "city": "https://images.unsplash.com/photo-1449824913935-59a10b8d2000?w=1920&h=1080&fit=crop",
    "space": "https://images.unsplash.com/photo-1446776877081-d282a0f896e2?w=1920&h=1080&fit=crop",
}

# Order used when cycling through backgrounds from the keyboard.
BACKGROUND_CYCLE: Tuple[str, ...] = ("none", "blur") + tuple(PRESET_BACKGROUNDS)

DEFAULT_TIMEOUT = 10.0


def parse_background(value: Optional[str]) -> BackgroundSpec:
    """Turn a user selection into a BackgroundSpec.

    Accepts ``none`` (or empty), ``blur``, a preset name, a file path, an
    ``http(s)://`` URL or a ``data:image/...;base64,`` URL.
    """
    if value is None:
        return BackgroundSpec.none()
    if not isinstance(value, str):
        raise TypeError(f"background must be a string, got {type(value).__name__}")

    text = value.strip()
    key = text.lower()
    if key in ("", "none"):
        return BackgroundSpec.none()
    if key == "blur":
        return BackgroundSpec.blur()
    if key in PRESET_BACKGROUNDS:
        return BackgroundSpec.image(PRESET_BACKGROUNDS[key])
    return BackgroundSpec.image(text)


def next_background(current: BackgroundSpec) -> BackgroundSpec:
    """Background following ``current`` in BACKGROUND_CYCLE (wraps around)."""
    names = list(BACKGROUND_CYCLE)
    specs = [parse_background(name) for name in names]
    try:
        idx = specs.index(current)
    except ValueError:
        return specs[0]
    return specs[(idx + 1) % len(specs)]


def decode_image_bytes(data: bytes) -> Optional[np.ndarray]:
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size == 0:
        return None
    return cv2.imdecode(buf, cv2.IMREAD_COLOR)


class BackgroundLoader:
    """Loads and caches background images keyed by URL.

    A failed load is cached as unavailable so the frame loop does not retry
    on every tick; ``retry`` or selecting another background clears it.
    Remote images can be fetched ahead of time with ``prefetch``; while such
    a fetch is in flight ``get`` returns None instead of blocking.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        on_error: Optional[Callable[[str, str], None]] = None,
        fetcher: Optional[Callable[[str, float], bytes]] = None,
    ) -> None:
        self.timeout = float(timeout)
        self.on_error = on_error
        self._fetch = fetcher or _fetch_url
        self._cache: Dict[str, Optional[np.ndarray]] = {}
        self._pending: Set[str] = set()
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None

    def get(self, spec: BackgroundSpec) -> Optional[np.ndarray]:
        """Image for an IMAGE spec, or None when unavailable or not an image."""
        if spec.kind is not BackgroundKind.IMAGE or not spec.url:
            return None
        with self._lock:
            if spec.url in self._pending:
                return None
            if spec.url in self._cache:
                return self._cache[spec.url]
        image = self._load(spec.url)
        with self._lock:
            self._cache[spec.url] = image
        return image

    def preload(self, spec: BackgroundSpec) -> bool:
        return self.get(spec) is not None

    def retry(self, spec: BackgroundSpec) -> Optional[np.ndarray]:
        if spec.url:
            with self._lock:
                self._cache.pop(spec.url, None)
        return self.get(spec)

    def forget_failures(self) -> None:
        with self._lock:
            for url in [u for u, img in self._cache.items() if img is None]:
                del self._cache[url]

    def prefetch(self, specs: Iterable[BackgroundSpec]) -> List[threading.Thread]:
        """Load image backgrounds on daemon threads; returns the started threads."""
        threads = []
        for spec in specs:
            if spec.kind is not BackgroundKind.IMAGE or not spec.url:
                continue
            with self._lock:
                if spec.url in self._cache or spec.url in self._pending:
                    continue
                self._pending.add(spec.url)
            thread = threading.Thread(target=self._prefetch_one, args=(spec.url,), daemon=True)
            thread.start()
            threads.append(thread)
        return threads

    def _prefetch_one(self, url: str) -> None:
        image = self._load(url)
        with self._lock:
            self._cache[url] = image
            self._pending.discard(url)

    def _load(self, url: str) -> Optional[np.ndarray]:
        try:
            image = self._read(url)
        except (OSError, ValueError, cv2.error) as exc:
            self._report(url, f"Failed to load background image: {exc}")
            return None

        if image is None or image.size == 0:
            self._report(url, "Failed to load background image: unreadable image data")
            return None

        logger.info("Background image loaded: %s (%dx%d)", _short(url), image.shape[1], image.shape[0])
        self.last_error = None
        return image

    def _read(self, url: str) -> Optional[np.ndarray]:
        if url.startswith("data:"):
            header, sep, payload = url.partition(",")
            if not sep or ";base64" not in header:
                raise ValueError("only base64 data URLs are supported")
            return decode_image_bytes(base64.b64decode(payload))
        if url.startswith(("http://", "https://")):
            return decode_image_bytes(self._fetch(url, self.timeout))

        path = url[len("file://"):] if url.startswith("file://") else url
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        return cv2.imread(path, cv2.IMREAD_COLOR)

    def _report(self, url: str, message: str) -> None:
        logger.warning("%s (%s)", message, _short(url))
        self.last_error = message
        if self.on_error is not None:
            self.on_error(url, message)


def _fetch_url(url: str, timeout: float) -> bytes:
    req = urllib.request.Request(url, headers={"User-Agent": "posebooth"})
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return resp.read()


def _short(url: str, limit: int = 60) -> str:
    return url if len(url) <= limit else url[:limit] + "..."

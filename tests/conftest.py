import io
import os

# Must be set before imgtoolbox is imported: Config reads the environment once
os.environ["LOG_DIR"] = ""
os.environ["ARK_API_KEY"] = "test-ark-key"
os.environ["REMOVE_BG_API_KEY"] = "test-remove-bg-key"
os.environ["MAX_FILE_SIZE_MB"] = "1"

import httpx
import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imgtoolbox.api import routes
from imgtoolbox.main import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def ark_upstream(monkeypatch):
    """Route Ark calls to a handler; returns the list of captured requests."""
    captured = []

    def install(handler):
        def recording_handler(request: httpx.Request):
            captured.append(request)
            return handler(request)

        monkeypatch.setattr(routes.ark_client, "transport", httpx.MockTransport(recording_handler))
        return captured

    return install


@pytest.fixture
def remove_bg_upstream(monkeypatch):
    captured = []

    def install(handler):
        def recording_handler(request: httpx.Request):
            captured.append(request)
            return handler(request)

        monkeypatch.setattr(routes.remove_bg_client, "transport", httpx.MockTransport(recording_handler))
        return captured

    return install


def encode_image(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def photo_like_image(size=(160, 120), seed=7) -> Image.Image:
    """Gradient plus noise, so JPEG quality visibly changes the output size."""
    rng = np.random.default_rng(seed)
    width, height = size
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    base = np.stack(
        [
            np.tile(x, (height, 1)),
            np.tile(y[:, None], (1, width)),
            np.full((height, width), 128, dtype=np.float32),
        ],
        axis=2,
    )
    noisy = base + rng.normal(0, 25, base.shape)
    return Image.fromarray(np.clip(noisy, 0, 255).astype(np.uint8))


@pytest.fixture
def png_bytes():
    return encode_image(photo_like_image())


@pytest.fixture
def image_bytes():
    """Factory: encode a PIL image (default: photo-like) to bytes."""

    def make(image: Image.Image | None = None, fmt: str = "PNG") -> bytes:
        return encode_image(image if image is not None else photo_like_image(), fmt)

    return make

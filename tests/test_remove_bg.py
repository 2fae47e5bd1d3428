import io

import httpx
import numpy as np
import pytest
from PIL import Image

from imgtoolbox.api import routes
from imgtoolbox.core.image_processor import remove_background_threshold

FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-cutout"


def striped_image() -> Image.Image:
    """Columns with mean brightness 255, 201, 200, 0 and a mixed (250, 250, 101) = 200.33."""
    pixels = np.zeros((4, 5, 3), dtype=np.uint8)
    pixels[:, 0] = (255, 255, 255)
    pixels[:, 1] = (201, 201, 201)
    pixels[:, 2] = (200, 200, 200)
    pixels[:, 3] = (0, 0, 0)
    pixels[:, 4] = (250, 250, 101)
    return Image.fromarray(pixels)


def test_threshold_clears_only_pixels_brighter_than_cutoff(image_bytes):
    output = remove_background_threshold(image_bytes(striped_image()))

    with Image.open(io.BytesIO(output)) as image:
        assert image.format == "PNG"
        alpha = np.array(image.convert("RGBA"))[..., 3]
    assert alpha[:, 0].tolist() == [0] * 4
    assert alpha[:, 1].tolist() == [0] * 4
    assert alpha[:, 2].tolist() == [255] * 4
    assert alpha[:, 3].tolist() == [255] * 4
    assert alpha[:, 4].tolist() == [0] * 4


def test_threshold_keeps_color_channels(image_bytes):
    output = remove_background_threshold(image_bytes(striped_image()))

    with Image.open(io.BytesIO(output)) as image:
        rgb = np.array(image.convert("RGBA"))[..., :3]
    assert rgb[0, 3].tolist() == [0, 0, 0]
    assert rgb[0, 2].tolist() == [200, 200, 200]


def test_threshold_mode_over_http(client, image_bytes, remove_bg_upstream):
    captured = remove_bg_upstream(lambda request: httpx.Response(200, content=FAKE_PNG))

    response = client.post(
        "/api/remove-bg",
        files={"file": ("product.jpg", image_bytes(striped_image()), "image/png")},
        data={"mode": "threshold"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["x-background-removal-mode"] == "threshold"
    assert "removed_bg_product.png" in response.headers["content-disposition"]
    assert captured == []


def test_api_mode_forwards_upload_with_server_key(client, png_bytes, remove_bg_upstream):
    captured = remove_bg_upstream(lambda request: httpx.Response(200, content=FAKE_PNG))

    response = client.post("/api/remove-bg", files={"file": ("shoe.png", png_bytes, "image/png")})

    assert response.status_code == 200
    assert response.content == FAKE_PNG
    assert response.headers["x-background-removal-mode"] == "api"
    request = captured[0]
    assert str(request.url) == "https://api.remove.bg/v1.0/removebg"
    assert request.headers["X-Api-Key"] == "test-remove-bg-key"
    body = request.read()
    assert b'name="image_file"; filename="shoe.png"' in body
    assert b'name="size"\r\n\r\nauto' in body
    assert b'name="format"\r\n\r\npng' in body
    assert png_bytes in body


def test_api_key_never_reaches_the_caller(client, png_bytes, remove_bg_upstream):
    remove_bg_upstream(lambda request: httpx.Response(200, content=FAKE_PNG))

    response = client.post("/api/remove-bg", files={"file": ("shoe.png", png_bytes, "image/png")})

    assert b"test-remove-bg-key" not in response.content
    assert "test-remove-bg-key" not in str(response.headers)


def test_api_mode_without_key_returns_500(client, png_bytes, remove_bg_upstream, monkeypatch):
    captured = remove_bg_upstream(lambda request: httpx.Response(200, content=FAKE_PNG))
    monkeypatch.setattr(routes.config, "remove_bg_api_key", None)

    response = client.post("/api/remove-bg", files={"file": ("shoe.png", png_bytes, "image/png")})

    assert response.status_code == 500
    assert response.json() == {"error": "Background removal API key not configured"}
    assert captured == []


@pytest.mark.parametrize("status", [402, 403])
def test_api_mode_passes_upstream_status_through(client, png_bytes, remove_bg_upstream, status):
    remove_bg_upstream(lambda request: httpx.Response(status, json={"errors": [{"title": "Insufficient credits"}]}))

    response = client.post("/api/remove-bg", files={"file": ("shoe.png", png_bytes, "image/png")})

    assert response.status_code == status
    assert response.json() == {"error": f"API request failed: {status}"}


def test_unknown_mode_is_rejected(client, png_bytes):
    response = client.post(
        "/api/remove-bg",
        files={"file": ("shoe.png", png_bytes, "image/png")},
        data={"mode": "magic"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Mode must be one of: api, threshold"}


@pytest.mark.parametrize("status", [302, 304])
def test_api_mode_maps_non_error_upstream_status_to_502(client, png_bytes, remove_bg_upstream, status):
    remove_bg_upstream(lambda request: httpx.Response(status))

    response = client.post("/api/remove-bg", files={"file": ("shoe.png", png_bytes, "image/png")})

    assert response.status_code == 502
    assert response.json() == {"error": f"API request failed: {status}"}

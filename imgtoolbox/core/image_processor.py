import io
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from imgtoolbox.core.config import Config
from imgtoolbox.core.errors import InvalidInput, PayloadTooLarge
from imgtoolbox.core.models import CompressionResult, Palette
from imgtoolbox.utils.memory import log_memory_usage

MIN_QUALITY = 10
MAX_QUALITY = 100
DEFAULT_QUALITY = 80

# Pixels whose mean RGB is above this become fully transparent
BRIGHTNESS_CUTOFF = 200

MAX_PALETTE_COLORS = 16
PALETTE_SAMPLE_SIZE = (256, 256)


def _open_image(content: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logging.warning(f"Failed to decode uploaded image: {e}")
        raise InvalidInput("Uploaded file is not a valid image")
    # Match what a browser draws: EXIF orientation applied
    return ImageOps.exif_transpose(image)


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    """Drop transparency by compositing onto a white background."""
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def compress_jpeg(content: bytes, quality: int) -> CompressionResult:
    """Re-encode an image as JPEG at the given quality (10-100)."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidInput("Quality must be an integer")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise InvalidInput(f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}")

    image = _flatten_to_rgb(_open_image(content))
    log_memory_usage()

    output = io.BytesIO()
    image.save(output, format="JPEG", quality=quality)
    data = output.getvalue()

    result = CompressionResult(
        data=data,
        original_size=len(content),
        compressed_size=len(data),
        quality=quality,
    )
    logging.info(
        f"Compressed {image.size[0]}x{image.size[1]} image at quality {quality}: "
        f"{result.original_size} -> {result.compressed_size} bytes ({result.ratio}%)"
    )
    return result


def remove_background_threshold(content: bytes, cutoff: int = BRIGHTNESS_CUTOFF) -> bytes:
    """Make every pixel brighter than ``cutoff`` transparent and return a PNG.

    Brightness is the plain mean of R, G and B. This only works for subjects
    shot on a light, flat background; it is not a matting algorithm.
    """
    image = _open_image(content).convert("RGBA")
    log_memory_usage()

    pixels = np.array(image)
    channel_sum = pixels[..., :3].astype(np.uint16).sum(axis=2)
    # mean > cutoff  <=>  sum > 3 * cutoff, kept in integers
    mask = channel_sum > 3 * cutoff
    pixels[mask, 3] = 0

    output = io.BytesIO()
    Image.fromarray(pixels).save(output, format="PNG")
    logging.info(f"Threshold background removal cleared {int(mask.sum())} of {mask.size} pixels")
    return output.getvalue()


def extract_palette(content: bytes, count: int = 5) -> Palette:
    """Most frequent colors of an image, most frequent first."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidInput("Count must be an integer")
    if count < 1 or count > MAX_PALETTE_COLORS:
        raise InvalidInput(f"Count must be between 1 and {MAX_PALETTE_COLORS}")

    image = _flatten_to_rgb(_open_image(content))
    image.thumbnail(PALETTE_SAMPLE_SIZE)

    # Few enough distinct colors: report them exactly
    exact = image.getcolors(maxcolors=count)
    if exact is not None:
        ranked = [rgb for _, rgb in sorted(exact, key=lambda item: item[0], reverse=True)]
    else:
        quantized = image.quantize(colors=count, method=Image.Quantize.MEDIANCUT)
        palette = quantized.getpalette() or []
        counts = sorted(quantized.getcolors() or [], key=lambda item: item[0], reverse=True)
        ranked = [tuple(palette[index * 3:index * 3 + 3]) for _, index in counts[:count]]

    return Palette(colors=[f"#{r:02X}{g:02X}{b:02X}" for r, g, b in ranked])


class ImageProcessor:
    """Runs the local image tools off the event loop."""

    def __init__(self, config: Config):
        self.config = config
        self.thread_pool = ThreadPoolExecutor(max_workers=config.max_workers)
        logging.info(f"Initialized ImageProcessor with {config.max_workers} workers")

    async def read_upload(self, file: UploadFile) -> bytes:
        """Read and size-check an uploaded file."""
        content = await file.read()
        logging.info(f"Received file: {file.filename} ({len(content)} bytes)")

        if len(content) == 0:
            logging.warning("Empty file received")
            raise InvalidInput("Empty file received.")

        if len(content) > self.config.max_file_size_bytes:
            logging.warning(f"File too large: {len(content)} bytes")
            raise PayloadTooLarge(f"File too large. Maximum size is {self.config.max_file_size_mb}MB.")

        return content

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, func, *args)

    async def compress(self, content: bytes, quality: int = DEFAULT_QUALITY) -> CompressionResult:
        return await self._run(compress_jpeg, content, quality)

    async def remove_background(self, content: bytes) -> bytes:
        return await self._run(remove_background_threshold, content)

    async def palette(self, content: bytes, count: int = 5) -> Palette:
        return await self._run(extract_palette, content, count)

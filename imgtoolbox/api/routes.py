import logging
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from imgtoolbox.core.ark_client import IMAGE_SIZES, ArkClient
from imgtoolbox.core.config import Config
from imgtoolbox.core.errors import InvalidInput, PayloadTooLarge
from imgtoolbox.core.image_processor import DEFAULT_QUALITY, ImageProcessor
from imgtoolbox.core.remove_bg_client import RemoveBgClient
from imgtoolbox.utils.formatting import (
    compressed_filename,
    format_file_size,
    removed_bg_filename,
)

REMOVE_BG_MODES = ("api", "threshold")

# Initialize router
router = APIRouter(prefix="/api")

# Initialize configuration, clients and image processor
config = Config()
image_processor = ImageProcessor(config)
ark_client = ArkClient(config)
remove_bg_client = RemoveBgClient(config)


async def _read_json_object(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInput("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def _attachment(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def _usage(example: str) -> JSONResponse:
    return JSONResponse(
        content={
            "status": "info",
            "message": "This endpoint only accepts POST requests with a JSON body.",
            "example": example,
        }
    )


@router.get("/generate")
async def generate_usage():
    return _usage('{"prompt": "a red fox in the snow", "size": "2K", "watermark": true}')


@router.post("/generate")
async def generate(request: Request):
    """Proxy a text prompt to the hosted image-generation model."""
    body = await _read_json_object(request)

    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidInput("No prompt provided")

    size = body.get("size")
    if size is None:
        size = "2K"
    if size not in IMAGE_SIZES:
        raise InvalidInput(f"Size must be one of: {', '.join(IMAGE_SIZES)}")

    watermark = body.get("watermark")
    if watermark is None:
        watermark = True
    if not isinstance(watermark, bool):
        raise InvalidInput("Watermark must be a boolean")

    image = await ark_client.generate_image(prompt, size=size, watermark=watermark)
    return {"url": image.url, "raw": image.raw}


@router.get("/recognize")
async def recognize_usage():
    return _usage('{"imageData": "data:image/jpeg;base64,/9j/4AAQ..."}')


@router.post("/recognize")
async def recognize(request: Request):
    """Proxy an image (data URL) to the hosted multimodal model for a description."""
    body = await _read_json_object(request)

    image_data = body.get("imageData")
    if not isinstance(image_data, str) or not image_data.strip():
        raise InvalidInput("No image data provided")

    # base64 inflates by 4/3
    if len(image_data) * 3 // 4 > config.max_file_size_bytes:
        logging.warning(f"Image data too large: {len(image_data)} chars")
        raise PayloadTooLarge(f"Image too large. Maximum size is {config.max_file_size_mb}MB.")

    result = await ark_client.recognize_image(image_data)
    return {"content": result.content, "raw": result.raw}


@router.post("/compress")
async def compress(file: UploadFile = File(...), quality: int = Form(DEFAULT_QUALITY)):
    """Re-encode an uploaded image as JPEG at the requested quality."""
    content = await image_processor.read_upload(file)
    result = await image_processor.compress(content, quality)

    logging.info(
        f"Compression of {file.filename}: {format_file_size(result.original_size)} -> "
        f"{format_file_size(result.compressed_size)}"
    )
    return Response(
        content=result.data,
        media_type="image/jpeg",
        headers={
            "Content-Disposition": _attachment(compressed_filename(file.filename)),
            "X-Original-Size": str(result.original_size),
            "X-Compressed-Size": str(result.compressed_size),
            "X-Compression-Ratio": str(result.ratio),
        }
    )


@router.post("/remove-bg")
async def remove_bg(file: UploadFile = File(...), mode: str = Form("api")):
    """Remove the background with the hosted API or the brightness threshold."""
    if mode not in REMOVE_BG_MODES:
        raise InvalidInput(f"Mode must be one of: {', '.join(REMOVE_BG_MODES)}")

    content = await image_processor.read_upload(file)
    if mode == "threshold":
        processed = await image_processor.remove_background(content)
    else:
        processed = await remove_bg_client.remove_background(
            content,
            file.filename or "image",
            file.content_type or "application/octet-stream",
        )

    return Response(
        content=processed,
        media_type="image/png",
        headers={
            "Content-Disposition": _attachment(removed_bg_filename(file.filename)),
            "X-Background-Removal-Mode": mode,
        }
    )


@router.post("/palette")
async def palette(file: UploadFile = File(...), count: int = Form(5)):
    """Dominant colors of an uploaded image."""
    content = await image_processor.read_upload(file)
    result = await image_processor.palette(content, count)
    return {"colors": result.colors}

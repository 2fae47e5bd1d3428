import os
import logging

import psutil
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imgtoolbox.api.routes import config, router
from imgtoolbox.core.errors import ToolboxError
from imgtoolbox.middleware.error_handler import error_handler_middleware
from imgtoolbox.middleware.request_logger import request_logger_middleware
from imgtoolbox.middleware.timeout import timeout_middleware
from imgtoolbox.utils.memory import current_memory_mb

TOOLS = [
    {
        "name": "compress",
        "path": "/api/compress",
        "description": "Re-encode an image as JPEG at a chosen quality (10-100) and report the size saved.",
    },
    {
        "name": "remove-bg",
        "path": "/api/remove-bg",
        "description": "Remove the background with the hosted remove.bg API or a simple brightness threshold.",
    },
    {
        "name": "recognize",
        "path": "/api/recognize",
        "description": "Describe the content of an image with a hosted multimodal model.",
    },
    {
        "name": "generate",
        "path": "/api/generate",
        "description": "Generate an image from a text prompt with a hosted image model.",
    },
]

app = FastAPI(
    title="Image Toolbox API",
    description="Image compression, background removal, recognition and AI generation",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (the last registered runs first, so every response gets a request id)
app.middleware("http")(timeout_middleware)
app.middleware("http")(error_handler_middleware)
app.middleware("http")(request_logger_middleware)

app.include_router(router)


@app.exception_handler(ToolboxError)
async def toolbox_error_handler(request: Request, exc: ToolboxError):
    logging.warning(f"{request.method} {request.url.path} failed ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.get("/")
async def tool_catalog():
    return {"tools": TOOLS}


@app.get("/health")
async def health_check():
    try:
        memory_mb = current_memory_mb()
        threshold_mb = config.memory_threshold_mb
        memory_status = "healthy" if memory_mb < threshold_mb else "warning"

        return {
            "status": "healthy",
            "memory": {
                "current_mb": round(memory_mb, 1),
                "threshold_mb": threshold_mb,
                "status": memory_status
            }
        }
    except psutil.Error as e:
        return {
            "status": "healthy",
            "memory": {
                "error": str(e)
            }
        }


def main():
    """Run the API with uvicorn."""
    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", 8000))
    uvicorn.run("imgtoolbox.main:app", host=host, port=port)


if __name__ == "__main__":
    main()

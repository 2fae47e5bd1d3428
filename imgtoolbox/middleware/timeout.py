import asyncio
import time
import os
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

# Paths that wait on a hosted model get the long budget
UPSTREAM_PATHS = ("/api/generate", "/api/recognize", "/api/remove-bg")


def timeout_for_path(path: str) -> float:
    """Seconds a request to ``path`` may run before answering 504."""
    if path.startswith(UPSTREAM_PATHS):
        return float(os.getenv("UPSTREAM_REQUEST_TIMEOUT_SECONDS", "150"))
    return float(os.getenv("LOCAL_REQUEST_TIMEOUT_SECONDS", "30"))


async def timeout_middleware(request: Request, call_next):
    """Middleware to timeout requests after a certain duration."""
    timeout_seconds = timeout_for_path(request.url.path)
    start_time = time.time()

    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout_seconds)

    except asyncio.TimeoutError:
        elapsed_time = time.time() - start_time
        logging.error(f"Request {request.url.path} timed out after {elapsed_time:.2f} seconds")

        return JSONResponse(
            status_code=504,
            content={
                "error": f"Request timed out after {timeout_seconds:g} seconds. Please try again later."
            }
        )

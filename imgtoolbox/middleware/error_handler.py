from fastapi import Request
from fastapi.responses import JSONResponse
import logging
import traceback


async def error_handler_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logging.error(f"Error processing request {request.method} {request.url.path}: {str(e)}")
        logging.error("Full traceback:")
        logging.error(traceback.format_exc())

        return JSONResponse(
            status_code=500,
            content={"error": str(e) or "Server error"}
        )

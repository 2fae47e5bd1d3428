from fastapi import Request
import time
import uuid
import logging

REQUEST_ID_HEADER = "X-Request-ID"


async def request_logger_middleware(request: Request, call_next):
    """Log each request with its status and duration and tag the response with an id."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
    client_host = request.client.host if request.client else "-"
    start_time = time.time()
    logging.info(f"[{request_id}] {request.method} {request.url.path} from {client_host}")

    response = await call_next(request)

    process_time = time.time() - start_time
    logging.info(
        f"[{request_id}] {request.method} {request.url.path} "
        f"- Status: {response.status_code} - Time: {process_time:.2f}s"
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response

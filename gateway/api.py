"""
FastAPI routes for the Gateway API.
"""

import json
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from common.logging import bind_request_context, clear_request_context, get_logger
from gateway.catalog import list_models
from gateway.exceptions import GatewayError, InvalidRequestError, RateLimitExceededError
from gateway.models import ErrorResponse
from gateway.service import ChatService
from gateway.streaming import StreamEvent, StreamEventType
from guardrails.exceptions import ContentRejectedError
from model_router.models import ChatRequest

logger = get_logger(__name__)

TRACE_HEADER = "X-Trace-Id"


def _error_json(status_code: int, body: ErrorResponse, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _gateway_error_json(exc: GatewayError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceededError) and exc.retry_after_seconds is not None:
        headers = {"Retry-After": str(max(1, int(round(exc.retry_after_seconds))))}
    return _error_json(
        exc.status_code, ErrorResponse.of(str(exc), exc.error_type, exc.error_code), headers
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def encode_sse(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    """
    Render stream events as server-sent events.

    Chunks become `data: {json}` frames, the end of stream `data: [DONE]`,
    and a failure an `event: error` frame carrying the error body.
    """
    async for event in events:
        if event.type == StreamEventType.CHUNK:
            payload = json.dumps(event.chunk.to_wire(), separators=(",", ":"))
            yield f"data: {payload}\n\n"
        elif event.type == StreamEventType.DONE:
            yield "data: [DONE]\n\n"
        else:
            yield f"event: error\ndata: {event.error.model_dump_json()}\n\n"


def create_app(service: ChatService, enable_cors: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: ChatService wired with classifier, router and hooks
        enable_cors: Whether to enable CORS middleware

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.startup()
        logger.info("gateway_started", providers=service.router.get_providers())
        try:
            yield
        finally:
            await service.shutdown()
            logger.info("gateway_stopped")

    app = FastAPI(
        title="Tiered Inference Gateway",
        description="OpenAI-compatible gateway that routes each request to a model tier by difficulty",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.chat_service = service

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        # Bind trace_id to logger context - will appear in all subsequent logs
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        bind_request_context(trace_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[TRACE_HEADER] = trace_id
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        error = InvalidRequestError(_validation_message(exc))
        logger.warning("api_request_validation_error", error=str(error))
        return _gateway_error_json(error)

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError):
        logger.warning(
            "api_request_rejected",
            error=str(exc),
            error_type=type(exc).__name__,
            status_code=exc.status_code,
        )
        return _gateway_error_json(exc)

    @app.exception_handler(ContentRejectedError)
    async def handle_content_rejected(request: Request, exc: ContentRejectedError):
        logger.warning("api_request_content_rejected", filter=exc.filter_name)
        return _error_json(
            exc.status_code, ErrorResponse.invalid_request(str(exc), code=exc.error_code)
        )

    @app.get("/health")
    async def health():
        """Health check endpoint with provider enablement."""
        return service.health()

    @app.get("/v1/models")
    async def models():
        """Static model catalog."""
        return list_models().model_dump()

    @app.post("/v1/chat/completions")
    async def chat_completions(request: ChatRequest):
        """
        Chat completion endpoint.

        Returns a chat.completion object, or a text/event-stream of
        chat.completion.chunk objects when stream is true.
        """
        logger.info(
            "chat_request_received",
            model=request.model,
            stream=request.stream,
            messages=len(request.messages),
        )

        try:
            if request.stream:
                events = await service.stream(request)
                return StreamingResponse(
                    encode_sse(events),
                    media_type="text/event-stream",
                    headers={"Cache-Control": "no-cache"},
                )

            response = await service.complete(request)
            return JSONResponse(content=response.to_wire())

        except (GatewayError, ContentRejectedError):
            raise
        except Exception as e:
            logger.error(
                "api_request_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            return _error_json(
                500, ErrorResponse.api_error("An error occurred processing your request")
            )

    return app

# api/server.py
# ============================================================================
# ASTA EDUCATION BACKEND - FASTAPI SERVER
# ============================================================================
# Payments, form submissions, admin listings, LMS content and spreadsheet
# downloads. Collaborators come from a ServiceContainer passed to create_app.
# ============================================================================

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from config import settings
from pipeline.errors import GatewayError, PipelineError
from schemas.requests import (
    AboutSubmission,
    ContactSubmission,
    ContentCreateRequest,
    CreateOrderRequest,
    VerifyPaymentRequest,
)
from services.container import ServiceContainer, build_container


# ============================================================================
# LOGGING
# ============================================================================

def configure_logging(level: str = settings.LOG_LEVEL, production: bool = settings.is_production):
    renderer = (
        structlog.processors.JSONRenderer()
        if production
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


configure_logging()
logger = structlog.get_logger().bind(component="server")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CORRELATION_HEADER = "X-Correlation-ID"

# Client-facing messages for server-side failures by error kind
SERVER_ERROR_MESSAGES = {
    "persistence": "Database error",
    "media_host": "Media host error",
    "gateway": "Error creating order",
}


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    uptime_seconds: float
    database: str


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def correlation_id_for(request: Request) -> str:
    return request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())


def _pipeline_response(result) -> JSONResponse:
    return JSONResponse(
        result.body,
        status_code=result.status_code,
        headers={CORRELATION_HEADER: result.correlation_id},
    )


router = APIRouter()


# ============================================================================
# PAYMENTS
# ============================================================================

@router.post("/create-order")
async def create_order(
    payload: Optional[CreateOrderRequest] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Create a Razorpay order and return the checkout descriptor."""
    payload = payload or CreateOrderRequest()
    if payload.missing(*payload.REQUIRED) or payload.amount <= 0:
        return JSONResponse({"error": "All fields are required"}, status_code=400)

    try:
        descriptor = await container.gateway.create_checkout(payload.model_dump())
    except GatewayError as e:
        logger.error("create_order_failed", course=payload.course, error=e.message)
        return JSONResponse({"error": "Error creating order"}, status_code=500)

    return descriptor


@router.post("/verify-payment")
async def verify_payment(
    request: Request,
    payload: Optional[VerifyPaymentRequest] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Verify the checkout signature and commit the registration."""
    result = await container.orchestrator.confirm(
        payload or VerifyPaymentRequest(),
        correlation_id=correlation_id_for(request),
    )
    return _pipeline_response(result)


# ============================================================================
# FORM SUBMISSIONS
# ============================================================================

@router.post("/submit-contact")
async def submit_contact(
    request: Request,
    payload: Optional[ContactSubmission] = None,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.submissions.submit_contact(
        payload or ContactSubmission(),
        correlation_id=correlation_id_for(request),
    )
    return _pipeline_response(result)


@router.post("/submit-about-inquiry")
async def submit_about_inquiry(
    request: Request,
    payload: Optional[AboutSubmission] = None,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.submissions.submit_about(
        payload or AboutSubmission(),
        correlation_id=correlation_id_for(request),
    )
    return _pipeline_response(result)


# ============================================================================
# ADMIN LISTINGS
# ============================================================================

async def _listing(name: str, fetch):
    try:
        rows = await fetch()
    except Exception as e:
        logger.error("listing_failed", listing=name, error=str(e))
        return JSONResponse({"error": "Database error"}, status_code=500)
    return [row.model_dump(mode="json") for row in rows]


@router.get("/api/students")
async def list_students(container: ServiceContainer = Depends(get_container)):
    return await _listing("students", container.store.list_students)


@router.get("/api/contact-messages")
async def list_contact_messages(container: ServiceContainer = Depends(get_container)):
    return await _listing("contact_messages", container.store.list_contact_messages)


@router.get("/api/about-inquiries")
async def list_about_inquiries(container: ServiceContainer = Depends(get_container)):
    return await _listing("about_inquiries", container.store.list_about_inquiries)


@router.get("/api/users")
async def list_users(container: ServiceContainer = Depends(get_container)):
    return await _listing("users", container.store.list_users)


@router.get("/api/download/{file}")
async def download(file: str, container: ServiceContainer = Depends(get_container)):
    """Download one of the spreadsheet mirrors: students, contact or about."""
    path = container.mirror.resolve_download(file)
    if path is None:
        return JSONResponse({"error": "File not found"}, status_code=404)
    return FileResponse(path, filename=path.name, media_type=XLSX_MEDIA_TYPE)


# ============================================================================
# LMS CONTENT
# ============================================================================

@router.get("/api/lms/content")
async def list_content(container: ServiceContainer = Depends(get_container)):
    return await _listing("lms_content", container.content.list_content)


@router.post("/api/lms/upload", status_code=201)
async def upload_content(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    created_by: Optional[str] = Form(None),
    creator_email: Optional[str] = Form(None),
    external_auth_id: Optional[str] = Form(None),
    container: ServiceContainer = Depends(get_container),
):
    """Upload a file to the media host and record its metadata."""
    data = await file.read() if file is not None else b""
    created = await container.content.register_upload(
        data,
        filename=file.filename if file is not None else "",
        mime_type=file.content_type if file is not None else None,
        title=title,
        description=description,
        created_by=created_by,
        creator_email=creator_email,
        external_auth_id=external_auth_id,
    )
    return {"success": True, "id": created.id, "content": created.model_dump(mode="json")}


@router.post("/api/lms/content", status_code=201)
async def create_content(
    payload: Optional[ContentCreateRequest] = None,
    container: ServiceContainer = Depends(get_container),
):
    """Record metadata for an asset already uploaded by the client."""
    created = await container.content.register_content(payload or ContentCreateRequest())
    return {"success": True, "id": created.id, "content": created.model_dump(mode="json")}


@router.delete("/api/lms/content/{content_id}")
async def delete_content(content_id: int, container: ServiceContainer = Depends(get_container)):
    return await container.content.delete_content(content_id)


# ============================================================================
# HEALTH
# ============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, container: ServiceContainer = Depends(get_container)):
    """Health check endpoint."""
    uptime = (datetime.now(timezone.utc) - request.app.state.started_at).total_seconds()
    database_ok = await container.store.ping()
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        version=settings.VERSION,
        uptime_seconds=uptime,
        database="connected" if database_ok else "unavailable",
    )


# ============================================================================
# ERROR HANDLERS
# ============================================================================

async def handle_pipeline_error(request: Request, exc: PipelineError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error_kind=exc.kind, error=exc.message)
        message = SERVER_ERROR_MESSAGES.get(exc.kind, "Internal server error")
    else:
        message = exc.message
    return JSONResponse({"error": message}, status_code=exc.status_code)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    logger.info("request_invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ============================================================================
# APP FACTORY
# ============================================================================

def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info("server_starting", env=settings.ENV, version=settings.VERSION)
        try:
            await container.initialize()
        except Exception as e:
            logger.error("startup_degraded", error=str(e))
        yield
        logger.info("server_stopping")
        await container.close()

    app = FastAPI(
        title="ASTA Education Backend",
        description="Course payments, form submissions and LMS content",
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.started_at = datetime.now(timezone.utc)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        """Add response timing header."""
        start = time.perf_counter()
        response = await call_next(request)
        duration = (time.perf_counter() - start) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration:.2f}"
        return response

    app.add_exception_handler(PipelineError, handle_pipeline_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


app = create_app()


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "api.server:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENV == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_backend.config import settings
from blog_backend.database import create_tables, engine
from blog_backend.logging_config import configure_logging
from blog_backend.middleware import RequestContextMiddleware
from blog_backend.outcomes import ServiceFailure
from blog_backend.routers import articles, comments
from blog_backend.schemas import Envelope

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    logger.info("Blog API started (env=%s)", settings.APP_ENV)
    yield
    await engine.dispose()


app = FastAPI(
    title="Blog API - Article Engine",
    description="Articles, tags and threaded comments with role-based visibility",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(articles.router)
app.include_router(comments.router)


# ---------------------------------------------------------------------------
# Error envelopes
# ---------------------------------------------------------------------------

def _envelope_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    body = Envelope(success=False, data=None, error_message=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, mode="json"),
        headers=headers,
    )


@app.exception_handler(ServiceFailure)
async def service_failure_handler(request: Request, exc: ServiceFailure):
    result = exc.result
    return _envelope_response(result.kind.status_code, result.error_message or "Request failed")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _envelope_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope_response(500, "Internal server error")


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import logging

from .api.v1.admin import router as admin_router
from .api.v1.doctor import router as doctor_router
from .api.v1.doctor_appointments import router as doctor_appointments_router
from .api.v1.patient import router as patient_router
from .core.config import settings
from .core.database import init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

@asynccontextmanager
async def lifespan(app: FastAPI):
    db_url = settings.get_database_url
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION} on {db_url.split(':', 1)[0]}")
    try:
        init_db()
    except Exception:
        logger.exception("Failed to initialize database")
        raise
    yield

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Doctor availability, time slots and appointment booking",
    openapi_url=f"{API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"

    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.4f}s)")
    return response

# Exception handlers
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are client errors, reported as 400 with the first problem."""
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"{field}: {error.get('msg')}" if field else error.get("msg")
    logger.info(f"Rejected {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": message})

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    # Keep the specific reason (e.g. "Time slot not found") when there is one
    detail = getattr(exc, "detail", None) or "The requested resource was not found"
    return JSONResponse(
        status_code=404,
        content={"error": "Not Found", "detail": detail, "path": request.url.path}
    )

@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "detail": "An unexpected error occurred"}
    )

for router in (doctor_router, doctor_appointments_router, patient_router, admin_router):
    app.include_router(router, prefix=API_PREFIX)

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.VERSION
    }

@app.get("/")
async def root():
    return {"name": settings.APP_NAME, "version": settings.VERSION, "api": API_PREFIX}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("doctor_booking.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

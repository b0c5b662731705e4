"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from kingdomops.core.config import settings
from kingdomops.core.database import init_db
from kingdomops.core.errors import AuthorizationError, InvalidStateError, KingdomOpsError, NotFoundError, ValidationError
from kingdomops.api.auth import router as auth_router
from kingdomops.api.identity import router as identity_router
from kingdomops.api.assessments import router as assessments_router
from kingdomops.api.results import router as results_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=settings.LOG_FILE,
)
logger = logging.getLogger(__name__)

if settings.SENTRY_DSN and not settings.is_testing():
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutdown complete")

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url=None if settings.is_production() else "/docs",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

def _error(http_status: int, message: str, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=http_status, content={"error": {"message": message, "type": error_type, **extra}})

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, exc.message, "not_found")

@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return _error(status.HTTP_409_CONFLICT, exc.message, "invalid_state")

@app.exception_handler(ValidationError)
async def scoring_validation_handler(request: Request, exc: ValidationError):
    return _error(422, exc.message, "validation_error", details=exc.errors)

@app.exception_handler(AuthorizationError)
async def authorization_handler(request: Request, exc: AuthorizationError):
    logger.info(f"Denied {request.method} {request.url.path}: {exc.reason.value} ({exc.message})")
    return _error(status.HTTP_403_FORBIDDEN, exc.message, "forbidden", reason=exc.reason.value, required=exc.required)

@app.exception_handler(KingdomOpsError)
async def core_error_handler(request: Request, exc: KingdomOpsError):
    logger.error(f"Unmapped core error: {exc}")
    return _error(status.HTTP_400_BAD_REQUEST, exc.message, "error")

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, exc.detail, "http_error", status_code=exc.status_code)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(422, "Validation error", "validation_error", details=jsonable_encoder(exc.errors()))

app.include_router(auth_router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["auth"])
app.include_router(identity_router, prefix=settings.API_V1_PREFIX, tags=["identity"])
app.include_router(assessments_router, prefix=f"{settings.API_V1_PREFIX}/assessments", tags=["assessments"])
app.include_router(results_router, prefix=settings.API_V1_PREFIX, tags=["results"])

@app.get("/health")
def health():
    return {"status": "ok", "version": settings.APP_VERSION}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kingdomops.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())

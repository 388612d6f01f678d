import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.api.v1.api import api_router
from app.db.session import SessionLocal, get_pool_status
from app.logging_config import setup_logging
from app.middleware.custom_domain import CustomDomainMiddleware
from app.middleware.metrics import PrometheusMiddleware, metrics_endpoint, set_app_info
from app.middleware.request_logging import RequestLoggingMiddleware
from app.services.domain_errors import DomainError, DomainNotFound, HostnameAlreadyClaimed

setup_logging()
logger = logging.getLogger("hubisck.health")

app = FastAPI(
    title=f"{settings.APP_NAME} Domains",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    f"https://{settings.PLATFORM_DOMAIN}",
    f"https://www.{settings.PLATFORM_DOMAIN}",
]
cors_origins += [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Added last → runs first: request id / Host context for everything below
app.add_middleware(CustomDomainMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Domain rejections that escaped an endpoint's own translation."""
    if isinstance(exc, HostnameAlreadyClaimed):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, DomainNotFound):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content={"detail": str(exc)})


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    return {"message": f"{settings.APP_NAME} domain service", "docs": "/docs"}


@app.get("/health")
def health_check():
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", e)
        db_ok = False
    finally:
        db.close()
    body = {"status": "ok" if db_ok else "degraded", "env": settings.APP_ENV, "db_pool": get_pool_status()}
    return JSONResponse(status_code=200 if db_ok else 503, content=body)


app.add_route("/metrics", metrics_endpoint)
set_app_info(version="1.0.0", env=settings.APP_ENV)

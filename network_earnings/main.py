from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from .core.config import settings
from .core.db import create_all_tables
from .core.middleware.auth import JWTAuthMiddleware
from .routers import (
    activities, auth, campaigns, dashboard, disputes, earnings, leads,
    passthrough, payout_methods, payouts
)

logger = logging.getLogger(__name__)

PASSTHROUGH_PREFIX = "/api/"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting %s %s (auth provider: %s)",
                settings.APP_NAME, settings.APP_VERSION, settings.AUTH_PROVIDER)
    create_all_tables()
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    description="Referral campaigns, leads, earnings, payouts and disputes",
    version=settings.APP_VERSION
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Authentication
app.add_middleware(JWTAuthMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    if request.url.path.startswith(PASSTHROUGH_PREFIX):
        return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})
    return JSONResponse(status_code=400, content={"detail": errors})


@app.exception_handler(StarletteHTTPException)
async def passthrough_http_exception_handler(request: Request, exc: StarletteHTTPException):
    if not request.url.path.startswith(PASSTHROUGH_PREFIX):
        return await http_exception_handler(request, exc)
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    key = "message" if request.url.path.startswith(PASSTHROUGH_PREFIX) else "detail"
    return JSONResponse(status_code=500, content={key: "Internal server error"})


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok", "version": settings.APP_VERSION}


app.include_router(auth.router)
app.include_router(leads.router)
app.include_router(campaigns.router)
app.include_router(earnings.router)
app.include_router(payouts.router)
app.include_router(payout_methods.router)
app.include_router(disputes.router)
app.include_router(activities.router)
app.include_router(dashboard.router)
app.include_router(passthrough.router)

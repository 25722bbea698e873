import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api.v1.router import api_router
from marketplace.core.config import configure_logging, settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging()
    logger.info("Marketplace API starting (env=%s)", settings.APP_ENV)
    yield
    logger.info("Marketplace API shutting down")


app = FastAPI(
    title="Marketplace API",
    description="Recurring bookings, Yoco/PayFast payment webhooks and wallets",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Answer 400 with the first validation message instead of FastAPI's 422 list."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    message = message.removeprefix("Value error, ")
    logger.warning("Validation error for %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"detail": message})


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "marketplace-api", "version": "0.1.0"}

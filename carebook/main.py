import time
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables from .env file before settings are read
load_dotenv()

from carebook.core.config import Settings, settings as default_settings
from carebook.core.db import Database
from carebook.core.errors import CarebookError
from carebook.core.logging import setup_logging, request_id_ctx
from carebook.api.router import api_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, db: Database | None = None) -> FastAPI:
    settings = settings or (db.settings if db else default_settings)
    setup_logging(settings)
    app = FastAPI(title=settings.APP_NAME)
    app.state.settings = settings
    if db is not None:
        app.state.db = db

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id", "-")
        request_id_ctx.set(rid)
        response = await call_next(request)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {process_time:.2f}ms"
        )
        return response

    @app.exception_handler(CarebookError)
    async def domain_exception_handler(request: Request, exc: CarebookError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} for request {request.method} {request.url.path}: {exc.message}")
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message, "retryable": exc.retryable},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "An internal server error occurred."},
        )

    @app.on_event("startup")
    async def on_startup():
        if getattr(app.state, "db", None) is None:
            app.state.db = Database(settings)
        await app.state.db.init_models()

    @app.on_event("shutdown")
    async def on_shutdown():
        db = getattr(app.state, "db", None)
        if db:
            await db.dispose()

    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()

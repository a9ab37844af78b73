
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

import config
from activity_logger import activity_logger
from activity_routes import debug_router, router as activity_router
from auth_gate import AuthGateMiddleware
from auth_routes import router as auth_router
from chat_routes import router as chat_router
from database import create_db_and_tables
from errors import AppError
from page_routes import router as page_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One-time setup on startup; both steps only create what is missing
    create_db_and_tables()
    if config.sheets_configured():
        result = await run_in_threadpool(activity_logger.ensure_structure)
        if not result.success:
            logger.warning(f"⚠️ Sheet structure not verified: {result.error}")
    else:
        logger.warning("⚠️ Google Sheets not configured - activity logging will fail")
    if not config.SESSION_SECRET:
        logger.warning("⚠️ SESSION_SECRET not configured - nobody can sign in")
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Invalid request body for {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(enable_debug_routes: bool = None) -> FastAPI:
    app = FastAPI(title="Repo Chat - GitHub/GitLab + OpenAI", lifespan=lifespan)
    app.add_middleware(AuthGateMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth_router)
    app.include_router(activity_router)
    app.include_router(chat_router)
    app.include_router(page_router)
    if enable_debug_routes is None:
        enable_debug_routes = config.ENABLE_DEBUG_ROUTES
    if enable_debug_routes:
        app.include_router(debug_router)

    # Health checks
    @app.get("/")
    async def root():
        return {"status": "online", "service": "Repo Chat"}

    @app.get("/healthz")
    async def healthz():
        return {"status": "healthy"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

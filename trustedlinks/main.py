from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables as early as possible
load_dotenv()

from .config import settings, validate_settings
from .database import create_db_and_tables
from .dependencies import get_otp_store
from .exceptions import (
    TrustedLinksError,
    StorageError,
    trustedlinks_exception_handler,
    validation_exception_handler,
)
from .middleware import SecurityMiddleware, LoggingMiddleware, ErrorHandlingMiddleware
from .routers import whatsapp_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENV})...")
    # Refuse to boot with a broken messaging or storage configuration
    validate_settings(settings)
    app.state.db_init_ok = True
    app.state.db_init_error = None
    try:
        create_db_and_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        app.state.db_init_ok = False
        app.state.db_init_error = str(e)
        logger.exception("Database initialization failed")
    if app.state.db_init_ok:
        try:
            purged = get_otp_store().purge_expired()
            if purged:
                logger.info(f"Purged {purged} expired OTP records")
        except StorageError:
            logger.exception("Expired OTP purge failed")
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
)

app.add_exception_handler(TrustedLinksError, trustedlinks_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(whatsapp_router.router)


@app.get("/health")
def health():
    db_ok = getattr(app.state, "db_init_ok", True)
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "messaging_provider": settings.MESSAGING_PROVIDER,
        "messaging_configured": settings.messaging_configured,
        "database": "ok" if db_ok else getattr(app.state, "db_init_error", "error"),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("trustedlinks.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)

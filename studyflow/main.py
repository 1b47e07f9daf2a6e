"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from studyflow.api import documents, flashcards, health, stories, study_sessions, users, webhooks
from studyflow.config import get_settings
from studyflow.db.session import async_session_maker, init_db
from studyflow.errors import AppError
from studyflow.middleware.rate_limit import limiter
from studyflow.services.store import StoreProvider

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting StudyFlow API...")

    disabled = [name for name, enabled in settings.capabilities.items() if not enabled]
    if disabled:
        logger.warning(f"Running without: {', '.join(disabled)}")

    # Production schemas are managed by Alembic
    if settings.app_env != "production":
        try:
            await init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            if not settings.allow_demo_fallback:
                raise

    app.state.stores = await StoreProvider.resolve(settings, async_session_maker)
    logger.info(f"StudyFlow API started with the {app.state.stores.backend} backend")

    yield

    logger.info("Shutting down StudyFlow API...")


app = FastAPI(
    title="StudyFlow API",
    description="""
## Study tools and narration API

- **Documents**: upload a PDF; the service extracts its text, summarizes it and authors a flashcard deck
- **Flashcards & study sessions**: review decks and record how a session went
- **Stories**: rewrite text as narration in one of four modes and turn it into speech

### Authentication
Send the identity provider's access token:
```
Authorization: Bearer <access_token>
```

### Plans
Free users get 10 narrations of up to 600 characters each; premium users get
unlimited narrations of up to 20000 characters.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, code: str | None = None) -> dict:
    body = {"message": message}
    if code:
        body["code"] = code
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render the service's error taxonomy as `{message, code?}`."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 with a readable message."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=_error_body(message))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=_error_body(f"Rate limit exceeded: {exc.detail}"),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=_error_body(str(exc) if settings.debug else "An unexpected error occurred"),
    )


# Include routers
app.include_router(health.router)
app.include_router(users.router)
app.include_router(documents.router)
app.include_router(flashcards.router)
app.include_router(study_sessions.router)
app.include_router(stories.router)
app.include_router(webhooks.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "studyflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )

"""Main entry point for the showroom recommendation API."""

import os

from dotenv import load_dotenv
load_dotenv()  # Load .env into environment variables

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from showroom.api.middleware import RequestLoggingMiddleware
from showroom.api.routes.recommendations import router as recommendations_router
from showroom.config.settings import settings
from showroom.db.base import init_db
from showroom.logging import configure_logging

configure_logging()

logger = structlog.get_logger()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(title="Showroom Recommendation API")

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(recommendations_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    @app.on_event("startup")
    async def startup_event():
        """Create database tables on startup."""
        await init_db()
        logger.info(
            "Database initialized on startup",
            backend="postgres" if settings.is_postgres else "sqlite",
        )

    return app


app = create_app()


def main():
    """Run the API server."""
    port = int(os.environ.get("PORT", settings.api_port))
    logger.info("Starting server", host=settings.api_host, port=port, environment=settings.environment)
    uvicorn.run(app, host=settings.api_host, port=port, log_level="info")


if __name__ == "__main__":
    main()

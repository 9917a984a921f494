"""
SubGate - Subagent Registry and Task Delegation

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subgate import __version__
from subgate.api import router
from subgate.config import get_settings
from subgate.delegation import init_delegator

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    settings = get_settings()

    delegator = await init_delegator()
    logger.info("Task delegator initialized")

    delegator.start()

    logger.info(
        "SubGate started",
        extra={
            "instance_id": settings.instance_id,
            "port": settings.port,
            "workers": len(delegator.registry),
        }
    )

    yield

    await delegator.stop()
    logger.info("SubGate shutdown complete")


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    settings = get_settings()

    app = FastAPI(
        title="SubGate",
        description="Subagent registry and task delegation engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allowed_methods,
        allow_headers=settings.cors_allowed_headers,
    )

    app.include_router(router)

    return app


# Create app instance
app = create_app()


def main():
    """Main entry point for CLI"""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "subgate.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()

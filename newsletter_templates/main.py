import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsletter_templates import __version__
from newsletter_templates.api import create_api_router
from newsletter_templates.core.config import get_settings
from newsletter_templates.core.container import get_container
from newsletter_templates.infrastructure.database import dispose_engine, init_db

settings = get_settings()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("newsletter_templates").setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_container()
    await init_db()
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    configure_logging(settings.logging.level)

    app = FastAPI(
        title=settings.project_name,
        description="Handlebars newsletter templates, snippets and tier quotas",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_api_router(settings.api_prefix))

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()

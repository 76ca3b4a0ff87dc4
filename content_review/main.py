# content_review/main.py
from fastapi import FastAPI

from content_review.core.config import get_settings
from content_review.core.errors import register_exception_handlers
from content_review.core.logging import setup_logging, RequestIdMiddleware

from content_review.routers.health import router as health_router
from content_review.routers.review import router as review_router


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="Content Review & Approval API")

    app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(review_router)

    return app


app = create_app()

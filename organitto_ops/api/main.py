"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from organitto_ops.api.middleware import RequestIDMiddleware, MetricsMiddleware
from organitto_ops.api.v1 import activity, auth, finance, products, users, vendors
from organitto_ops.infrastructure.observability.logging import setup_logging
from organitto_ops.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Organitto Ops Gateway",
        description="Expense and investment approvals, and the product development pipeline",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(finance.router, prefix="/v1", tags=["finance"])
    app.include_router(products.router, prefix="/v1", tags=["products"])
    app.include_router(activity.router, prefix="/v1", tags=["activity"])
    app.include_router(users.router, prefix="/v1", tags=["users"])
    app.include_router(vendors.router, prefix="/v1", tags=["vendors"])
    app.include_router(auth.router, prefix="/v1", tags=["auth"])

    return app


app = create_app()

"""
Floor API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI

from floor_api.core import (
    configure_cors,
    lifespan,
    register_exception_handlers,
    register_middlewares,
)
from floor_api.routers import (
    floor_router,
    health_router,
    metrics_router,
    orders_router,
    tables_router,
)
from shared.config.settings import settings
from shared.security.rate_limit import limiter

app = FastAPI(
    title="Floor Operations API",
    description="Tables, order sessions and kitchen dispatch for restaurant floor terminals",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter

register_exception_handlers(app)
register_middlewares(app)
configure_cors(app)

app.include_router(health_router)
app.include_router(orders_router)
app.include_router(tables_router)
app.include_router(floor_router)
app.include_router(metrics_router)


def run() -> None:
    import uvicorn

    uvicorn.run(
        "floor_api.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()

# storefront/api/__init__.py
from fastapi import FastAPI

from storefront.api.errors import register_error_handlers
from storefront.api.routers import admin, carts, health, orders


def include_routers(app: FastAPI) -> FastAPI:
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(admin.router)
    return app

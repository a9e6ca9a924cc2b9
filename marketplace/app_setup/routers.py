"""
Registre central des routers (checkout, webhook Stripe, health).
"""
from fastapi import FastAPI

from marketplace.checkout import views as checkout_views
from marketplace.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(checkout_views.router)
    app.include_router(checkout_views.webhook_router)
    # Health & monitoring
    app.include_router(health_router)

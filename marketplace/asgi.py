"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: uvicorn workers) importe `marketplace.asgi:app`.
- Toute la configuration FastAPI est centralisée dans marketplace.app_setup.factory.
"""

from marketplace.app import app

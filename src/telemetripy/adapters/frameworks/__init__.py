"""Framework adapters (ASGI, WSGI, FastAPI).

FastAPI is optional; import telemetripy.adapters.frameworks.fastapi directly.
"""

from telemetripy.adapters.frameworks.asgi import (
    ASGIPerformanceMiddleware,
    create_asgi_app,
)
from telemetripy.adapters.frameworks.recording import RequestRecorder
from telemetripy.adapters.frameworks.wsgi import (
    WSGIPerformanceMiddleware,
    create_wsgi_app,
)

__all__ = [
    "ASGIPerformanceMiddleware",
    "RequestRecorder",
    "WSGIPerformanceMiddleware",
    "create_asgi_app",
    "create_wsgi_app",
]

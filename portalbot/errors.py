from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarHTTP
import logging

from .ai.errors import (
    BundleMissingError,
    ChatbotError,
    ModelNotLoadedError,
    ModelUnavailableError,
    TransportError,
)

logger = logging.getLogger("portalbot")

# everything else in the taxonomy is a 500
_SERVICE_UNAVAILABLE = (BundleMissingError, ModelUnavailableError, ModelNotLoadedError, TransportError)


def install_error_handlers(app):
    @app.exception_handler(StarHTTP)
    async def http_exc(_: Request, exc: StarHTTP):
        return JSONResponse({"error": f"HTTP_{exc.status_code}", "detail": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(ChatbotError)
    async def chatbot_exc(_: Request, exc: ChatbotError):
        status = 503 if isinstance(exc, _SERVICE_UNAVAILABLE) else 500
        logger.error(f"{exc.error_code}: {exc}")
        return JSONResponse({"error": exc.error_code, "detail": str(exc)}, status_code=status)

    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse({"error": "INTERNAL_ERROR", "detail": "Unexpected error"}, status_code=500)
